"""
Configuration settings for the voice mock interview system.
All settings can be overridden via environment variables.
"""
import os
from typing import Dict, List
from dataclasses import dataclass, field


@dataclass
class LLMConfig:
    """Text-generation server configuration."""
    base_url: str = field(default_factory=lambda: os.getenv("LLM_URL", "http://localhost:9000"))
    completion_endpoint: str = "/completion"
    timeout: int = field(default_factory=lambda: int(os.getenv("LLM_TIMEOUT", "60")))
    max_retries: int = 3

    # Default generation parameters
    default_temperature: float = 0.7
    default_top_p: float = 0.9
    default_repeat_penalty: float = 1.1
    default_max_tokens: int = 800


@dataclass
class WhisperConfig:
    """Whisper STT configuration (server-side transcription endpoint)."""
    model_path: str = field(default_factory=lambda: os.getenv("WHISPER_MODEL_PATH", "../models/medium"))
    device: str = field(default_factory=lambda: os.getenv("WHISPER_DEVICE", "cpu"))
    compute_type: str = field(default_factory=lambda: os.getenv("WHISPER_COMPUTE_TYPE", "int8"))


@dataclass
class StorageConfig:
    """Session store configuration."""
    backend: str = field(default_factory=lambda: os.getenv("SESSION_STORE", "memory"))
    mongodb_uri: str = field(default_factory=lambda: os.getenv("MONGODB_URI", ""))
    database: str = field(default_factory=lambda: os.getenv("MONGODB_DB", "mock_interview"))
    collection: str = "interviews"

    # Read-modify-write attempts before a version conflict is surfaced
    max_update_attempts: int = 3


@dataclass
class InterviewConfig:
    """Interview flow configuration."""
    question_count: int = field(default_factory=lambda: int(os.getenv("QUESTION_COUNT", "7")))

    # Lines shorter than this are dropped by the line-splitting fallback
    min_question_length: int = 6

    # Extra generation calls when the model returns fewer than question_count
    extra_generation_attempts: int = 1

    default_owner: str = "anonymous"

    # Spoken when the text-generation call fails mid-turn
    fallback_reply: str = "Thank you for your answer. Let's move on."

    # Characters removed from the narrative report
    report_markup_chars: str = "*#_`"

    report_sections: List[str] = field(default_factory=lambda: [
        "Overall Summary",
        "Strengths",
        "Weaknesses",
        "Areas of Improvement",
        "Technical Skill Evaluation",
        "Communication & Explanation Quality",
        "Final Recommendation (Hire / Good Fit / Needs Improvement / Not a Fit)",
    ])

    # Score bands used in the deterministic report when the narrative call fails
    score_bands: Dict[str, int] = field(default_factory=lambda: {
        "Hire": 80,
        "Good Fit": 65,
        "Needs Improvement": 40,
        "Not a Fit": 0,
    })


@dataclass
class VoiceConfig:
    """Voice client loop configuration."""
    silence_timeout_ms: int = field(default_factory=lambda: int(os.getenv("SILENCE_TIMEOUT_MS", "5000")))
    server_url: str = field(default_factory=lambda: os.getenv("INTERVIEW_SERVER_URL", "http://localhost:8000"))
    request_timeout: int = 120
    results_path: str = "/dashboard/{interview_id}"


class Config:
    """Main configuration class combining all config sections."""

    def __init__(self):
        self.llm = LLMConfig()
        self.whisper = WhisperConfig()
        self.storage = StorageConfig()
        self.interview = InterviewConfig()
        self.voice = VoiceConfig()


# Global config instance
config = Config()
