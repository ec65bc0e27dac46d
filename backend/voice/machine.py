"""
Voice client loop as an explicit finite-state machine.

transition(state, event) -> (state, effects) is pure: it never touches a
microphone, a speaker, a timer or the network. The controller executes the
returned effects and feeds their outcomes back as events.

Phases:
    IDLE -> SPEAKING(question) -> LISTENING -> SUBMITTING -> SPEAKING(reply)
         -> SPEAKING(next question) -> LISTENING ... -> FINISHED
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from utils.config import config


class Phase(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    SUBMITTING = "submitting"
    SPEAKING = "speaking"
    FINISHED = "finished"


class SpeechPurpose(str, Enum):
    QUESTION = "question"
    REPLY = "reply"
    DOUBT = "doubt"


# Recognizer errors after which restarting is pointless
FATAL_RECOGNITION_ERRORS = frozenset({"not-allowed", "service-not-allowed", "audio-capture"})


@dataclass(frozen=True)
class Line:
    """One local transcript line."""
    who: str
    text: str
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, str]:
        return {"who": self.who, "text": self.text, "ts": self.ts}


@dataclass(frozen=True)
class TurnOutcome:
    ai_reply: str
    next_question: Optional[str] = None
    end_interview: bool = False


@dataclass(frozen=True)
class ClientState:
    """Everything one loop instance knows. Owned by a single controller."""
    interview_id: str
    questions: Tuple[str, ...]
    answers: Tuple[str, ...] = ()
    transcript: Tuple[Line, ...] = ()
    current: int = 0
    phase: Phase = Phase.IDLE
    speaking: Optional[SpeechPurpose] = None
    last_utterance: str = ""
    timer_token: Optional[int] = None
    next_token: int = 1
    pending_turn: Optional[TurnOutcome] = None
    doubt_busy: bool = False
    silence_timeout_ms: int = 5000

    @classmethod
    def from_document(cls, document: Dict[str, Any], silence_timeout_ms: Optional[int] = None) -> "ClientState":
        """Build the initial state from a session document."""
        if silence_timeout_ms is None:
            silence_timeout_ms = config.voice.silence_timeout_ms
        questions = tuple(document.get("questions") or ())
        answers = tuple(a or "" for a in (document.get("answers") or ()))
        transcript = tuple(
            Line(
                who=entry.get("speaker") or entry.get("who") or "",
                text=entry.get("text", ""),
                ts=str(entry.get("timestamp") or entry.get("ts") or ""),
            )
            for entry in document.get("transcript") or ()
        )
        current = int(document.get("currentIndex") or 0)
        return cls(
            interview_id=document["id"],
            questions=questions,
            answers=answers,
            transcript=transcript,
            current=max(0, min(current, len(questions) - 1)),
            silence_timeout_ms=silence_timeout_ms,
        )

    @property
    def current_question(self) -> str:
        return self.questions[self.current] if self.questions else ""

    @property
    def is_last_question(self) -> bool:
        return self.current >= len(self.questions) - 1

    def answer_at(self, index: int) -> str:
        return self.answers[index] if index < len(self.answers) else ""


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class StartRequested:
    pass


@dataclass(frozen=True)
class StopRequested:
    pass


@dataclass(frozen=True)
class SpeechFinished:
    purpose: SpeechPurpose


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    is_final: bool


@dataclass(frozen=True)
class RecognitionEnded:
    pass


@dataclass(frozen=True)
class RecognitionFailed:
    error: str


@dataclass(frozen=True)
class SilenceElapsed:
    token: int


@dataclass(frozen=True)
class TurnReplied:
    outcome: TurnOutcome


@dataclass(frozen=True)
class TurnFailed:
    error: str


@dataclass(frozen=True)
class PreviousRequested:
    pass


@dataclass(frozen=True)
class NextRequested:
    pass


@dataclass(frozen=True)
class ReAnswerRequested:
    pass


@dataclass(frozen=True)
class FinishRequested:
    pass


@dataclass(frozen=True)
class DoubtRequested:
    pass


@dataclass(frozen=True)
class DoubtHeard:
    text: str


@dataclass(frozen=True)
class DoubtAnswered:
    answer: str


@dataclass(frozen=True)
class DoubtFailed:
    error: str


Event = Union[
    StartRequested, StopRequested, SpeechFinished, RecognitionResult,
    RecognitionEnded, RecognitionFailed, SilenceElapsed, TurnReplied, TurnFailed,
    PreviousRequested, NextRequested, ReAnswerRequested, FinishRequested,
    DoubtRequested, DoubtHeard, DoubtAnswered, DoubtFailed,
]


# ============================================================
# Effects
# ============================================================

@dataclass(frozen=True)
class Speak:
    text: str
    purpose: SpeechPurpose


@dataclass(frozen=True)
class CancelSpeech:
    pass


@dataclass(frozen=True)
class StartRecognition:
    pass


@dataclass(frozen=True)
class StopRecognition:
    pass


@dataclass(frozen=True)
class ArmSilenceTimer:
    token: int
    delay_ms: int


@dataclass(frozen=True)
class CancelSilenceTimer:
    token: int


@dataclass(frozen=True)
class SubmitTurn:
    interview_id: str
    question_index: int
    utterance: str
    transcript: Tuple[Line, ...]


@dataclass(frozen=True)
class SaveAnswersAndNavigate:
    interview_id: str
    answers: Tuple[str, ...]


@dataclass(frozen=True)
class Navigate:
    interview_id: str


@dataclass(frozen=True)
class Render:
    pass


@dataclass(frozen=True)
class ShowInterim:
    text: str


@dataclass(frozen=True)
class ShowDoubt:
    text: str


@dataclass(frozen=True)
class ShowError:
    message: str


@dataclass(frozen=True)
class CaptureDoubt:
    pass


@dataclass(frozen=True)
class PostDoubt:
    question: str
    doubt: str


Effect = Union[
    Speak, CancelSpeech, StartRecognition, StopRecognition, ArmSilenceTimer,
    CancelSilenceTimer, SubmitTurn, SaveAnswersAndNavigate, Navigate, Render,
    ShowInterim, ShowDoubt, ShowError, CaptureDoubt, PostDoubt,
]

Transition = Tuple[ClientState, List[Effect]]


# ============================================================
# Transition function
# ============================================================

def _with_answer(state: ClientState, index: int, text: str) -> Tuple[str, ...]:
    answers = list(state.answers)
    if len(answers) <= index:
        answers.extend([""] * (index + 1 - len(answers)))
    answers[index] = text
    return tuple(answers)


def _cancel_timer(state: ClientState) -> List[Effect]:
    return [CancelSilenceTimer(state.timer_token)] if state.timer_token is not None else []


def _speak_question(state: ClientState) -> Transition:
    state = replace(state, phase=Phase.SPEAKING, speaking=SpeechPurpose.QUESTION)
    return state, [Render(), Speak(state.current_question, SpeechPurpose.QUESTION)]


def _on_final_result(state: ClientState, text: str) -> Transition:
    # Consecutive final segments of one answer accumulate until the pause
    utterance = f"{state.last_utterance} {text}".strip()
    token = state.next_token
    effects = _cancel_timer(state)
    state = replace(
        state,
        last_utterance=utterance,
        answers=_with_answer(state, state.current, utterance),
        timer_token=token,
        next_token=token + 1,
    )
    return state, effects + [Render(), ArmSilenceTimer(token, state.silence_timeout_ms)]


def _on_silence(state: ClientState, token: int) -> Transition:
    if state.phase != Phase.LISTENING or token != state.timer_token or not state.last_utterance:
        return state, []
    utterance = state.last_utterance
    transcript = state.transcript + (Line("user", utterance),)
    state = replace(
        state,
        phase=Phase.SUBMITTING,
        timer_token=None,
        last_utterance="",
        transcript=transcript,
    )
    return state, [
        StopRecognition(),
        Render(),
        SubmitTurn(state.interview_id, state.current, utterance, transcript),
    ]


def _after_reply(state: ClientState) -> Transition:
    outcome = state.pending_turn or TurnOutcome(ai_reply="")
    state = replace(state, pending_turn=None, speaking=None)

    if outcome.end_interview:
        return replace(state, phase=Phase.FINISHED), [Navigate(state.interview_id)]

    following = state.current + 1
    if outcome.next_question and following < len(state.questions) and not state.questions[following].strip():
        questions = list(state.questions)
        questions[following] = outcome.next_question
        state = replace(state, questions=tuple(questions))

    if state.is_last_question:
        return replace(state, phase=Phase.FINISHED), [Navigate(state.interview_id)]

    return _speak_question(replace(state, current=following))


def transition(state: ClientState, event: Event) -> Transition:
    """Consume one event. FINISHED is terminal and ignores everything."""
    phase = state.phase
    if phase == Phase.FINISHED:
        return state, []

    if isinstance(event, StartRequested):
        if phase != Phase.IDLE or not state.questions:
            return state, []
        return _speak_question(state)

    if isinstance(event, SpeechFinished):
        if phase != Phase.SPEAKING or event.purpose != state.speaking:
            return state, []
        if event.purpose == SpeechPurpose.QUESTION:
            state = replace(state, phase=Phase.LISTENING, speaking=None, last_utterance="")
            return state, [StartRecognition()]
        return _after_reply(state)

    if isinstance(event, RecognitionResult):
        if phase != Phase.LISTENING:
            return state, []
        if not event.is_final:
            return state, [ShowInterim(event.text)]
        if not event.text.strip():
            return state, []
        return _on_final_result(state, event.text.strip())

    if isinstance(event, RecognitionEnded):
        # Platform timeouts end recognition sessions; keep listening
        if phase == Phase.LISTENING:
            return state, [StartRecognition()]
        return state, []

    if isinstance(event, RecognitionFailed):
        if phase == Phase.LISTENING and event.error in FATAL_RECOGNITION_ERRORS:
            effects = [StopRecognition()] + _cancel_timer(state)
            state = replace(state, phase=Phase.IDLE, timer_token=None, last_utterance="")
            return state, effects + [ShowError(f"Speech recognition unavailable: {event.error}")]
        return state, []

    if isinstance(event, SilenceElapsed):
        return _on_silence(state, event.token)

    if isinstance(event, TurnReplied):
        if phase != Phase.SUBMITTING:
            return state, []
        outcome = event.outcome
        state = replace(
            state,
            phase=Phase.SPEAKING,
            speaking=SpeechPurpose.REPLY,
            pending_turn=outcome,
            transcript=state.transcript + (Line("ai", outcome.ai_reply),),
        )
        return state, [Render(), Speak(outcome.ai_reply, SpeechPurpose.REPLY)]

    if isinstance(event, TurnFailed):
        if phase != Phase.SUBMITTING:
            return state, []
        state = replace(state, phase=Phase.IDLE)
        return state, [Render(), ShowError(f"Could not reach the interviewer: {event.error}")]

    if isinstance(event, StopRequested):
        if phase == Phase.LISTENING:
            effects = [StopRecognition()] + _cancel_timer(state)
            state = replace(state, phase=Phase.IDLE, timer_token=None, last_utterance="")
            return state, effects + [Render()]
        if phase == Phase.SPEAKING and state.speaking == SpeechPurpose.QUESTION:
            return replace(state, phase=Phase.IDLE, speaking=None), [CancelSpeech(), Render()]
        return state, []

    if isinstance(event, (PreviousRequested, NextRequested)):
        if phase != Phase.IDLE:
            return state, []
        step = -1 if isinstance(event, PreviousRequested) else 1
        target = state.current + step
        if not 0 <= target < len(state.questions):
            return state, []
        return replace(state, current=target), [Render()]

    if isinstance(event, ReAnswerRequested):
        if phase == Phase.SUBMITTING:
            return state, []
        effects = _cancel_timer(state) if phase == Phase.LISTENING else []
        state = replace(state, answers=_with_answer(state, state.current, ""))
        if phase == Phase.LISTENING:
            state = replace(state, last_utterance="", timer_token=None)
        return state, effects + [Render()]

    if isinstance(event, FinishRequested):
        effects = [StopRecognition()] + _cancel_timer(state)
        if phase == Phase.SPEAKING:
            effects.append(CancelSpeech())
        state = replace(
            state, phase=Phase.FINISHED, speaking=None, timer_token=None, last_utterance=""
        )
        return state, effects + [SaveAnswersAndNavigate(state.interview_id, state.answers)]

    if isinstance(event, DoubtRequested):
        if state.doubt_busy:
            return state, []
        return replace(state, doubt_busy=True), [CaptureDoubt()]

    if isinstance(event, DoubtHeard):
        if not state.doubt_busy:
            return state, []
        return state, [PostDoubt(state.current_question, event.text)]

    if isinstance(event, DoubtAnswered):
        state = replace(state, doubt_busy=False)
        effects = [ShowDoubt(event.answer)]
        # Speaking over the interviewer would swallow its completion callback
        if phase in (Phase.IDLE, Phase.LISTENING):
            effects.append(Speak(event.answer, SpeechPurpose.DOUBT))
        return state, effects

    if isinstance(event, DoubtFailed):
        return replace(state, doubt_busy=False), [ShowDoubt("Doubt failed")]

    return state, []
