"""
Voice client loop: state machine, controller and adapters.
"""
from .machine import ClientState, Phase, SpeechPurpose, TurnOutcome, transition
from .controller import LoggingView, VoiceInterviewController
from .adapters import AsyncioScheduler, HttpInterviewTransport

__all__ = [
    "ClientState",
    "Phase",
    "SpeechPurpose",
    "TurnOutcome",
    "transition",
    "LoggingView",
    "VoiceInterviewController",
    "AsyncioScheduler",
    "HttpInterviewTransport",
]
