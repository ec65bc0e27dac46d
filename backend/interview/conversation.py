"""
Conversation turn engine: one candidate utterance in, a spoken reply and the
next-question decision out.

The model's JSON is never trusted. Every turn degrades through strict parse,
balanced-object extraction and a deterministic fallback so the session can
always advance.
"""
import logging
from typing import Any, List, Optional, Tuple

from interview.state import InterviewStateMachine
from llm.client import TextGenerator
from llm.parsing import ParseKind, ParseResult, parse_json_object, report_degraded
from llm.prompts import Prompts
from models.schemas import InterviewSession, Speaker, TranscriptLine, TurnResult
from storage.base import SessionStore
from utils.config import config
from utils.errors import GenerationError

logger = logging.getLogger(__name__)


class _SupersededTurn(Exception):
    """The attempt a reply belongs to changed while the model was answering."""


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _as_question(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
        return value.strip()
    return None


class ConversationTurnEngine:
    """
    Drives the in_progress part of a session.
    """

    def __init__(self, llm: TextGenerator, store: SessionStore):
        self.llm = llm
        self.store = store

    # ========================================
    # Attempt lifecycle
    # ========================================

    def start_attempt(self, session_id: str) -> InterviewSession:
        """generated|in_progress -> in_progress with a clean transcript."""
        session = self.store.update(
            session_id, lambda s: InterviewStateMachine(s).start_attempt()
        )
        logger.info(f"Attempt started for interview {session_id}")
        return session

    def restart_attempt(self, session_id: str) -> InterviewSession:
        """Any state -> in_progress, dropping transcript, answers and feedback."""
        session = self.store.update(
            session_id, lambda s: InterviewStateMachine(s).restart()
        )
        logger.info(f"Attempt restarted for interview {session_id}")
        return session

    # ========================================
    # Turns
    # ========================================

    def turn(
        self,
        session_id: str,
        question_index: int,
        utterance: str,
        client_transcript: Optional[List[TranscriptLine]] = None,
    ) -> TurnResult:
        """
        Record the candidate's answer, get the interviewer's reply and move on.

        The client transcript is informational; the stored transcript is
        authoritative.
        """
        utterance = (utterance or "").strip()

        def record_user(session: InterviewSession):
            machine = InterviewStateMachine(session)
            machine.ensure_accepting_turns()
            machine.record_answer(question_index, utterance)
            machine.append_transcript(Speaker.USER, utterance)

        session = self.store.update(session_id, record_user)
        if client_transcript is not None and len(client_transcript) != len(session.transcript):
            logger.debug(
                f"Client transcript has {len(client_transcript)} entries, "
                f"server has {len(session.transcript)}"
            )

        user_entry = session.transcript[-1]
        transcript_length = len(session.transcript)
        result, parsed = self._reply(session, question_index, utterance)

        def record_ai(session: InterviewSession):
            machine = InterviewStateMachine(session)
            if not machine.awaits_reply_to(user_entry, transcript_length):
                raise _SupersededTurn()
            machine.append_transcript(Speaker.AI, result.ai_reply)
            if machine.adopt_question(question_index + 1, result.next_question):
                logger.info(f"Stored generated question at slot {question_index + 1}")
            if result.end_interview:
                machine.end_conversation()
            else:
                machine.advance()

        try:
            session = self.store.update(session_id, record_ai)
        except _SupersededTurn:
            # The reply still goes back to the caller; the session is left as is
            logger.warning(
                f"Turn {question_index} on {session_id} was superseded by a restart, "
                f"finalization or newer turn; reply not recorded"
            )
            return result

        logger.info(
            f"Turn {question_index} on {session_id}: parse={parsed.kind.value} "
            f"end={result.end_interview} currentIndex={session.current_index}"
        )
        return result

    def _reply(
        self, session: InterviewSession, question_index: int, utterance: str
    ) -> Tuple[TurnResult, ParseResult]:
        prompt = Prompts.turn_reply(
            transcript_text=InterviewStateMachine(session).transcript_text(),
            question_index=question_index,
            question_count=session.question_count,
            current_question=session.questions[question_index],
            utterance=utterance,
        )

        try:
            raw = self.llm.complete(prompt)
        except GenerationError as e:
            logger.warning(f"Turn generation failed for {session.id}, using scripted reply: {e}")
            parsed = ParseResult(ParseKind.FALLBACK, None, "")
            return self._fallback(session, question_index, ""), parsed

        parsed = parse_json_object(raw)
        report_degraded(parsed, f"turn {question_index} of {session.id}")
        if parsed.value is None:
            return self._fallback(session, question_index, raw.strip()), parsed

        payload = parsed.value
        result = TurnResult(
            ai_reply=str(payload.get("aiReply") or "").strip() or config.interview.fallback_reply,
            next_question=_as_question(payload.get("nextQuestion")),
            end_interview=_as_bool(payload.get("endInterview")),
        )
        return result, parsed

    @staticmethod
    def _fallback(session: InterviewSession, question_index: int, raw_text: str) -> TurnResult:
        """Reply with the raw text and continue with the scripted question list."""
        next_question = session.question_at(question_index + 1)
        return TurnResult(
            ai_reply=raw_text or config.interview.fallback_reply,
            next_question=next_question,
            end_interview=next_question is None,
        )
