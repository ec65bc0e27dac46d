"""
Interview session state machine.
Guards lifecycle transitions and the index/answer invariants of a session.
"""
from typing import Optional

from models.schemas import (
    Feedback,
    InterviewSession,
    InterviewStatus,
    Speaker,
    TranscriptEntry,
)
from utils.errors import ValidationError


class InterviewStateMachine:
    """
    Applies transitions to one InterviewSession in place.

    generated -> in_progress -> completed, plus restart which returns any
    session to in_progress with a clean slate.
    """

    def __init__(self, session: InterviewSession):
        self.session = session

    # ========================================
    # Lifecycle
    # ========================================

    def start_attempt(self):
        """Begin (or re-begin) an attempt on a session that is not completed."""
        if self.session.status == InterviewStatus.COMPLETED:
            raise ValidationError(
                f"Interview {self.session.id} is completed; restart it instead",
                field="interviewId",
            )
        self._reset()

    def restart(self):
        """Explicit restart from any state. Drops feedback as well."""
        self._reset()
        self.session.feedback = None

    def _reset(self):
        self.session.status = InterviewStatus.IN_PROGRESS
        self.session.transcript = []
        self.session.answers = []
        self.session.current_index = 0

    def ensure_accepting_turns(self):
        """Turns are only valid while the attempt is running."""
        if self.session.status != InterviewStatus.IN_PROGRESS:
            raise ValidationError(
                f"Interview {self.session.id} is {self.session.status.value}, not in_progress",
                field="interviewId",
            )

    def awaits_reply_to(self, entry: TranscriptEntry, transcript_length: int) -> bool:
        """
        True while the attempt that recorded entry is still running and
        entry is still the last of transcript_length lines. A restart, a
        finalization or a newer turn in between makes the reply stale.
        """
        transcript = self.session.transcript
        if self.session.status != InterviewStatus.IN_PROGRESS or len(transcript) != transcript_length:
            return False
        last = transcript[-1]
        return (
            last.speaker == entry.speaker
            and last.text == entry.text
            and last.timestamp == entry.timestamp
        )

    def ensure_not_finalized(self):
        if self.session.feedback is not None:
            raise ValidationError(
                f"Interview {self.session.id} has already been scored",
                field="interviewId",
            )

    def end_conversation(self):
        """The conversation is over; scoring happens separately."""
        self.session.status = InterviewStatus.COMPLETED

    def finalize(self, feedback: Feedback):
        self.session.feedback = feedback
        self.session.status = InterviewStatus.COMPLETED

    # ========================================
    # Conversation
    # ========================================

    def check_question_index(self, index: int):
        if not 0 <= index < self.session.question_count:
            raise ValidationError(
                f"questionIndex {index} is outside 0..{self.session.question_count - 1}",
                field="questionIndex",
            )

    def record_answer(self, index: int, utterance: str):
        """Store the answer for question index, replacing any earlier answer."""
        self.check_question_index(index)
        answers = list(self.session.answers)
        if len(answers) <= index:
            answers.extend([""] * (index + 1 - len(answers)))
        answers[index] = utterance
        self.session.answers = answers

    def append_transcript(self, speaker: Speaker, text: str) -> TranscriptEntry:
        entry = TranscriptEntry(speaker=speaker, text=text)
        self.session.transcript = self.session.transcript + [entry]
        return entry

    def adopt_question(self, index: int, question: Optional[str]) -> bool:
        """
        Fill a blank question slot with a dynamically generated question.
        Materialized questions are never overwritten.
        """
        if not question or not 0 <= index < self.session.question_count:
            return False
        if self.session.questions[index].strip():
            return False
        questions = list(self.session.questions)
        questions[index] = question.strip()
        self.session.questions = questions
        return True

    def advance(self):
        """Move to the next question, never past the last one."""
        last = self.session.question_count - 1
        self.session.current_index = min(self.session.current_index + 1, last)

    def transcript_text(self) -> str:
        """Transcript rendered for prompts, one "SPEAKER: text" line per entry."""
        return "\n".join(
            f"{entry.speaker.value.upper()}: {entry.text}"
            for entry in self.session.transcript
        )
