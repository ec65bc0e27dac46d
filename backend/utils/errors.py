"""
Error taxonomy shared by the interview services and the HTTP layer.
"""


class InterviewError(Exception):
    """Base class for all interview service errors."""
    status_code = 500


class ValidationError(InterviewError):
    """Missing or malformed caller input. Names the offending field."""
    status_code = 400

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class NotFound(InterviewError):
    """Unknown session id."""
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Interview {session_id} not found")
        self.session_id = session_id


class GenerationError(InterviewError):
    """The text-generation call failed outright. Safe to retry."""
    status_code = 500


class ScoringFormatError(InterviewError):
    """The batch scoring output could not be parsed by any recovery path."""
    status_code = 500


class ConcurrentUpdateError(InterviewError):
    """A session write was based on a stale version."""
    status_code = 409


class ParseDegradeWarning(UserWarning):
    """Model output was malformed and a deterministic fallback was used."""
