"""
Answer scoring and final report generation.

Scores come from a single batch call and are never guessed: unparseable
scoring output fails the whole finalization. The narrative report is a
second call whose failure never discards valid scores.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from interview.state import InterviewStateMachine
from llm.client import TextGenerator
from llm.parsing import parse_scoring
from llm.prompts import Prompts
from models.schemas import Feedback, InterviewSession, QuestionFeedback
from storage.base import SessionStore
from utils.cleaning import ResponseCleaner
from utils.config import config
from utils.errors import GenerationError, ScoringFormatError

logger = logging.getLogger(__name__)


class AnswerScorer:
    """
    Normalizes raw scoring output into per-question feedback.
    """

    MISSING_EXPLANATION = "No explanation"

    @staticmethod
    def clamp(value: Any, min_val: int = 0, max_val: int = 100) -> int:
        """Coerce a model-supplied score into [min_val, max_val]; junk becomes 0."""
        try:
            return max(min_val, min(max_val, int(round(float(value)))))
        except (TypeError, ValueError, OverflowError):
            return 0

    @classmethod
    def build_per_question(
        cls,
        questions: List[str],
        answers: List[str],
        results: Sequence[Any],
    ) -> List[QuestionFeedback]:
        """Zip questions and answers with results by position."""
        per_question = []
        for i, question in enumerate(questions):
            result = results[i] if i < len(results) else None
            if not isinstance(result, dict):
                result = {}
            per_question.append(QuestionFeedback(
                question=question,
                answer=answers[i] if i < len(answers) else "",
                score=cls.clamp(result.get("score", 0)),
                explanation=str(result.get("explanation") or "").strip() or cls.MISSING_EXPLANATION,
            ))
        return per_question

    @staticmethod
    def get_recommendation(overall_score: int) -> str:
        """Band label for an overall 0-100 score."""
        bands = sorted(config.interview.score_bands.items(), key=lambda kv: kv[1], reverse=True)
        for label, threshold in bands:
            if overall_score >= threshold:
                return label
        return bands[-1][0]


class ScoringEngine:
    """
    Finalizes a session: batch scores, narrative report, status completed.
    """

    def __init__(self, llm: TextGenerator, store: SessionStore):
        self.llm = llm
        self.store = store

    def finalize(self, session_id: str, final_answers: Sequence[Optional[str]]) -> Feedback:
        """
        Score every answer and write feedback.

        Either the whole operation succeeds (feedback written, status
        completed) or nothing is written.

        Raises:
            NotFound: unknown id
            ValidationError: the session already has feedback
            GenerationError: the scoring call failed
            ScoringFormatError: the scoring output could not be parsed
        """
        session = self.store.load(session_id)
        InterviewStateMachine(session).ensure_not_finalized()

        answers = [
            (final_answers[i] or "").strip() if i < len(final_answers) else ""
            for i in range(session.question_count)
        ]
        pairs = [{"question": q, "answer": a} for q, a in zip(session.questions, answers)]

        raw = self.llm.complete(Prompts.batch_scoring(pairs))
        scored = parse_scoring(raw)
        if scored is None:
            raise ScoringFormatError("Invalid AI format")

        results = scored.get("results")
        if not isinstance(results, list):
            results = []
        if len(results) < session.question_count:
            logger.warning(
                f"Scoring returned {len(results)}/{session.question_count} results for {session_id}"
            )

        per_question = AnswerScorer.build_per_question(session.questions, answers, results)
        overall_score = AnswerScorer.clamp(scored.get("overallScore", 0))
        detailed_report = self._narrative(session, per_question, overall_score)

        feedback = Feedback(
            per_question=per_question,
            overall_score=overall_score,
            detailed_report=detailed_report,
        )

        def write_feedback(latest: InterviewSession):
            machine = InterviewStateMachine(latest)
            machine.ensure_not_finalized()
            latest.answers = answers
            machine.finalize(feedback)

        self.store.update(session_id, write_feedback)
        logger.info(f"Interview {session_id} finalized with overall score {overall_score}")
        return feedback

    def _narrative(
        self,
        session: InterviewSession,
        per_question: List[QuestionFeedback],
        overall_score: int,
    ) -> str:
        prompt = Prompts.detailed_report(
            per_question=[q.to_document() for q in per_question],
            overall_score=overall_score,
            sections=config.interview.report_sections,
        )
        try:
            raw = self.llm.complete(prompt)
        except GenerationError as e:
            logger.warning(f"Report generation failed for {session.id}, keeping scores: {e}")
            return self._fallback_report(per_question, overall_score)

        report = ResponseCleaner.strip_markup(raw, config.interview.report_markup_chars)
        return report or self._fallback_report(per_question, overall_score)

    @staticmethod
    def _fallback_report(per_question: List[QuestionFeedback], overall_score: int) -> str:
        answered = sum(1 for q in per_question if q.answer)
        lines: Dict[str, str] = {
            "Overall Summary": (
                f"Overall score {overall_score}/100 across {len(per_question)} questions "
                f"({answered} answered). The detailed narrative could not be generated."
            ),
            "Final Recommendation": AnswerScorer.get_recommendation(overall_score),
        }
        return "\n\n".join(f"{title}: {text}" for title, text in lines.items())
