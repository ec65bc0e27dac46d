"""
Pydantic models for interview sessions and the HTTP contract.

Field names are snake_case in Python and camelCase on the wire; the
persisted document uses the camelCase aliases.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe dict using the external field names."""
        return self.model_dump(mode="json", by_alias=True)


class InterviewStatus(str, Enum):
    GENERATED = "generated"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Speaker(str, Enum):
    USER = "user"
    AI = "ai"


class InterviewParameters(CamelModel):
    """Role and skill parameters; immutable after creation."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    type: str
    skills: List[str]
    experience_level: str
    duration_minutes: int


class TranscriptEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class QuestionFeedback(CamelModel):
    question: str
    answer: str = ""
    score: int = Field(default=0, ge=0, le=100)
    explanation: str = ""


class Feedback(CamelModel):
    per_question: List[QuestionFeedback] = Field(default_factory=list)
    overall_score: int = Field(default=0, ge=0, le=100)
    detailed_report: str = ""


class InterviewSession(CamelModel):
    """One interview attempt's full persisted state."""
    id: str
    owner: str
    parameters: InterviewParameters
    questions: List[str]
    answers: List[str] = Field(default_factory=list)
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    current_index: int = 0
    status: InterviewStatus = InterviewStatus.GENERATED
    feedback: Optional[Feedback] = None
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def question_at(self, index: int) -> Optional[str]:
        """Question text at index, or None when out of range or blank."""
        if 0 <= index < len(self.questions) and self.questions[index].strip():
            return self.questions[index]
        return None


class InterviewSummary(CamelModel):
    """Row shown on the dashboard listing."""
    id: str
    title: str
    type: str
    status: InterviewStatus
    overall_score: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_session(cls, session: InterviewSession) -> "InterviewSummary":
        return cls(
            id=session.id,
            title=session.parameters.title,
            type=session.parameters.type,
            status=session.status,
            overall_score=session.feedback.overall_score if session.feedback else None,
            created_at=session.created_at,
        )


class TurnResult(CamelModel):
    ai_reply: str
    next_question: Optional[str] = None
    end_interview: bool = False


# ============================================================
# HTTP request / response bodies
# ============================================================

class GenerateRequest(CamelModel):
    """Body for question generation. Validation happens in the generator."""
    title: str = ""
    type: str = ""
    skills: List[str] = Field(default_factory=list)
    experience_level: str = ""
    duration: Optional[int] = None

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, value):
        # The form posts skills as "Go, SQL" as often as ["Go", "SQL"]
        if isinstance(value, str):
            return [s.strip() for s in value.split(",") if s.strip()]
        return value


class GenerateResponse(CamelModel):
    interview_id: str
    questions: List[str]


class InterviewIdRequest(CamelModel):
    interview_id: str


class TranscriptLine(CamelModel):
    """Client-held transcript line; informational only."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    who: Optional[str] = None
    speaker: Optional[str] = None
    text: str = ""


class TurnRequest(CamelModel):
    interview_id: str
    question_index: int
    user_utterance: str = ""
    transcript: List[TranscriptLine] = Field(default_factory=list)


class SaveAnswersRequest(CamelModel):
    interview_id: str
    answers: List[Optional[str]] = Field(default_factory=list)


class FeedbackResponse(CamelModel):
    feedback: Feedback


class DoubtRequest(CamelModel):
    question: str = ""
    doubt: str = ""


class DoubtResponse(CamelModel):
    answer: str


class OkResponse(CamelModel):
    ok: bool = True
