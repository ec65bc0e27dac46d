"""
Question generation for a new interview session.
"""
import logging
import uuid
from typing import List, Optional, Tuple

from llm.client import TextGenerator
from llm.parsing import parse_question_list, report_degraded
from llm.prompts import Prompts, fallback_questions
from models.schemas import GenerateRequest, InterviewParameters, InterviewSession
from storage.base import SessionStore
from utils.config import config
from utils.errors import GenerationError, ValidationError

logger = logging.getLogger(__name__)


class QuestionGenerator:
    """
    Produces a fixed-size question list for a role and persists the session.
    """

    def __init__(self, llm: TextGenerator, store: SessionStore, question_count: Optional[int] = None):
        self.llm = llm
        self.store = store
        self.question_count = question_count or config.interview.question_count

    @staticmethod
    def validate(request: GenerateRequest) -> InterviewParameters:
        """
        Check the caller's parameters.

        Raises:
            ValidationError: naming the first missing or malformed field
        """
        required = {"title": "title", "type": "type", "experience_level": "experienceLevel"}
        for name, alias in required.items():
            if not (getattr(request, name) or "").strip():
                raise ValidationError(f"Missing required field: {alias}", field=alias)

        skills = [s.strip() for s in request.skills if s and s.strip()]
        if not skills:
            raise ValidationError("At least one skill is required", field="skills")

        if request.duration is None or request.duration <= 0:
            raise ValidationError("duration must be a positive number of minutes", field="duration")

        return InterviewParameters(
            title=request.title.strip(),
            type=request.type.strip(),
            skills=skills,
            experience_level=request.experience_level.strip(),
            duration_minutes=request.duration,
        )

    def generate_questions(self, params: InterviewParameters) -> List[str]:
        """
        Ask the model for exactly question_count questions.

        A short result triggers extra generation calls; slots still empty after
        that are filled from the fallback bank so every slot is materialized.

        Raises:
            GenerationError: the first generation call failed
        """
        n = self.question_count
        prompt = Prompts.question_set(
            title=params.title,
            interview_type=params.type,
            skills=params.skills,
            experience_level=params.experience_level,
            duration_minutes=params.duration_minutes,
            count=n,
        )
        questions = self._ask(prompt, n)

        for attempt in range(config.interview.extra_generation_attempts):
            if len(questions) >= n:
                break
            missing = n - len(questions)
            logger.warning(f"Model returned {len(questions)}/{n} questions, requesting {missing} more")
            prompt = Prompts.more_questions(
                title=params.title,
                skills=params.skills,
                experience_level=params.experience_level,
                existing=questions,
                missing=missing,
            )
            try:
                questions = _merge(questions, self._ask(prompt, missing), n)
            except GenerationError as e:
                logger.warning(f"Top-up generation failed: {e}")
                break

        if len(questions) < n:
            logger.warning(f"Padding {n - len(questions)} question(s) from the fallback bank")
            questions = _merge(questions, fallback_questions(params.type, params.skills, count=n), n)

        return questions[:n]

    def _ask(self, prompt: str, limit: int) -> List[str]:
        raw = self.llm.complete(prompt)
        result = parse_question_list(raw, limit, config.interview.min_question_length)
        report_degraded(result, "question generation")
        return _merge([], result.value, limit)

    def generate(self, request: GenerateRequest, owner: str) -> Tuple[InterviewSession, List[str]]:
        """
        Validate, generate and persist a new session with status generated.

        Returns:
            Tuple of (created session, questions)
        """
        params = self.validate(request)
        logger.info(f"Generating {self.question_count} questions for {params.title} ({params.type})")
        questions = self.generate_questions(params)

        session = InterviewSession(
            id=uuid.uuid4().hex,
            owner=owner,
            parameters=params,
            questions=questions,
        )
        self.store.create(session)
        return session, questions


def _merge(existing: List[str], new: List[str], limit: int) -> List[str]:
    """Append unseen questions (case-insensitive) up to limit."""
    merged = list(existing)
    seen = {q.strip().lower() for q in merged}
    for question in new:
        key = question.strip().lower()
        if len(merged) >= limit:
            break
        if key and key not in seen:
            merged.append(question.strip())
            seen.add(key)
    return merged
