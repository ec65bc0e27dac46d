# Data models
from .schemas import (
    Feedback,
    InterviewParameters,
    InterviewSession,
    InterviewStatus,
    InterviewSummary,
    QuestionFeedback,
    Speaker,
    TranscriptEntry,
    TurnResult,
)
