"""
Voice interview controller: executes state machine effects against the
speech, timer and network capabilities and feeds their callbacks back in.

Everything runs on one cooperative event loop. Callbacks dispatch events;
events are queued and processed run-to-completion, so an effect that calls
back synchronously never interleaves with the transition that produced it.
"""
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from utils.config import config
from voice.machine import (
    ArmSilenceTimer,
    CancelSilenceTimer,
    CancelSpeech,
    CaptureDoubt,
    ClientState,
    DoubtAnswered,
    DoubtFailed,
    DoubtHeard,
    DoubtRequested,
    Effect,
    Event,
    FinishRequested,
    Navigate,
    NextRequested,
    Phase,
    PostDoubt,
    PreviousRequested,
    ReAnswerRequested,
    RecognitionEnded,
    RecognitionFailed,
    RecognitionResult,
    Render,
    SaveAnswersAndNavigate,
    ShowDoubt,
    ShowError,
    ShowInterim,
    SilenceElapsed,
    Speak,
    SpeechFinished,
    StartRecognition,
    StartRequested,
    StopRecognition,
    StopRequested,
    SubmitTurn,
    TurnFailed,
    TurnOutcome,
    TurnReplied,
    transition,
)

logger = logging.getLogger(__name__)

OnError = Callable[[Exception], None]


# ============================================================
# Capabilities
# ============================================================

class SpeechRecognizer(Protocol):
    """Speech-to-text capability (browser Web Speech API, desktop engine, ...)."""

    def start(
        self,
        on_result: Callable[[str, bool], None],
        on_end: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def capture_once(self, on_text: Callable[[str], None], on_error: Callable[[str], None]) -> None: ...


class SpeechSynthesizer(Protocol):
    """Text-to-speech capability."""

    def speak(self, text: str, on_done: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class InterviewTransport(Protocol):
    """Client side of the interview HTTP API."""

    def submit_turn(self, payload: Dict[str, Any], on_success: Callable[[Dict[str, Any]], None], on_error: OnError) -> None: ...

    def save_answers(self, interview_id: str, answers: List[str], on_done: Callable[[], None]) -> None: ...

    def ask_doubt(self, question: str, doubt: str, on_success: Callable[[str], None], on_error: OnError) -> None: ...


class Navigator(Protocol):
    def navigate(self, url: str) -> None: ...


class InterviewView(Protocol):
    def render(self, state: ClientState) -> None: ...

    def show_interim(self, text: str) -> None: ...

    def show_doubt(self, text: str) -> None: ...

    def show_error(self, message: str) -> None: ...


class LoggingView:
    """View that only logs; used when no UI is attached."""

    def render(self, state: ClientState) -> None:
        logger.debug(
            f"Question {state.current + 1} of {len(state.questions)} "
            f"[{state.phase.value}]: {state.current_question}"
        )

    def show_interim(self, text: str) -> None:
        logger.debug(f"Interim: {text}")

    def show_doubt(self, text: str) -> None:
        logger.info(f"Doubt answer: {text}")

    def show_error(self, message: str) -> None:
        logger.warning(message)


# ============================================================
# Controller
# ============================================================

class VoiceInterviewController:
    """
    One client-side loop instance for one interview attempt.
    """

    def __init__(
        self,
        state: ClientState,
        recognizer: SpeechRecognizer,
        transport: InterviewTransport,
        scheduler: Scheduler,
        navigator: Navigator,
        synthesizer: Optional[SpeechSynthesizer] = None,
        view: Optional[InterviewView] = None,
        results_path: Optional[str] = None,
    ):
        self.state = state
        self.recognizer = recognizer
        self.transport = transport
        self.scheduler = scheduler
        self.navigator = navigator
        self.synthesizer = synthesizer
        self.view = view or LoggingView()
        self.results_path = results_path or config.voice.results_path

        self._queue: Deque[Event] = deque()
        self._dispatching = False
        self._navigated = False
        self._timers: Dict[int, TimerHandle] = {}

    @property
    def navigated(self) -> bool:
        return self._navigated

    # ========================================
    # User controls
    # ========================================

    def start(self):
        self.dispatch(StartRequested())

    def stop(self):
        self.dispatch(StopRequested())

    def previous(self):
        self.dispatch(PreviousRequested())

    def next(self):
        self.dispatch(NextRequested())

    def re_answer(self):
        self.dispatch(ReAnswerRequested())

    def finish(self):
        self.dispatch(FinishRequested())

    def ask_doubt(self):
        self.dispatch(DoubtRequested())

    # ========================================
    # Event processing
    # ========================================

    def dispatch(self, event: Event):
        """Queue an event and process the queue unless already processing."""
        if self._navigated:
            return
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue and not self._navigated:
                current = self._queue.popleft()
                previous_phase = self.state.phase
                self.state, effects = transition(self.state, current)
                if self.state.phase != previous_phase:
                    logger.debug(f"{type(current).__name__}: {previous_phase.value} -> {self.state.phase.value}")
                for effect in effects:
                    if self._navigated:
                        break
                    self._run(effect)
        finally:
            self._dispatching = False
            if self._navigated:
                self._queue.clear()

    def _run(self, effect: Effect):
        if isinstance(effect, Speak):
            self._speak(effect)
        elif isinstance(effect, CancelSpeech):
            if self.synthesizer is not None:
                self.synthesizer.cancel()
        elif isinstance(effect, StartRecognition):
            self._start_recognition()
        elif isinstance(effect, StopRecognition):
            self._stop_recognition()
        elif isinstance(effect, ArmSilenceTimer):
            self._timers[effect.token] = self.scheduler.call_later(
                effect.delay_ms / 1000.0,
                lambda token=effect.token: self._on_timer(token),
            )
        elif isinstance(effect, CancelSilenceTimer):
            handle = self._timers.pop(effect.token, None)
            if handle is not None:
                handle.cancel()
        elif isinstance(effect, SubmitTurn):
            self._submit(effect)
        elif isinstance(effect, SaveAnswersAndNavigate):
            self._cancel_all_timers()
            self.transport.save_answers(
                effect.interview_id,
                list(effect.answers),
                on_done=lambda: self._navigate(effect.interview_id),
            )
        elif isinstance(effect, Navigate):
            self._navigate(effect.interview_id)
        elif isinstance(effect, Render):
            self.view.render(self.state)
        elif isinstance(effect, ShowInterim):
            self.view.show_interim(effect.text)
        elif isinstance(effect, ShowDoubt):
            self.view.show_doubt(effect.text)
        elif isinstance(effect, ShowError):
            self.view.show_error(effect.message)
        elif isinstance(effect, CaptureDoubt):
            self.recognizer.capture_once(
                on_text=lambda text: self.dispatch(DoubtHeard(text)),
                on_error=lambda error: self.dispatch(DoubtFailed(error)),
            )
        elif isinstance(effect, PostDoubt):
            self.transport.ask_doubt(
                effect.question,
                effect.doubt,
                on_success=lambda answer: self.dispatch(DoubtAnswered(answer or "No answer")),
                on_error=lambda error: self.dispatch(DoubtFailed(str(error))),
            )
        else:
            raise TypeError(f"Unknown effect: {effect!r}")

    # ========================================
    # Effect helpers
    # ========================================

    def _speak(self, effect: Speak):
        def done():
            self.dispatch(SpeechFinished(effect.purpose))

        if self.synthesizer is None or not effect.text:
            done()
            return
        self.synthesizer.speak(effect.text, done)

    def _start_recognition(self):
        try:
            self.recognizer.start(
                on_result=lambda text, is_final: self.dispatch(RecognitionResult(text, is_final)),
                on_end=lambda: self.dispatch(RecognitionEnded()),
                on_error=lambda error: self.dispatch(RecognitionFailed(error)),
            )
        except Exception as e:
            # Starting twice raises on some platforms; the running session continues
            logger.warning(f"Recognition start failed: {e}")

    def _stop_recognition(self):
        try:
            self.recognizer.stop()
        except Exception as e:
            logger.warning(f"Recognition stop failed: {e}")

    def _on_timer(self, token: int):
        self._timers.pop(token, None)
        self.dispatch(SilenceElapsed(token))

    def _submit(self, effect: SubmitTurn):
        payload = {
            "interviewId": effect.interview_id,
            "questionIndex": effect.question_index,
            "userUtterance": effect.utterance,
            "transcript": [line.to_dict() for line in effect.transcript],
        }

        def on_success(body: Dict[str, Any]):
            outcome = TurnOutcome(
                ai_reply=body.get("aiReply") or "",
                next_question=body.get("nextQuestion") or None,
                end_interview=bool(body.get("endInterview")),
            )
            self.dispatch(TurnReplied(outcome))

        logger.info(f"Submitting answer for question {effect.question_index + 1}")
        self.transport.submit_turn(
            payload,
            on_success=on_success,
            on_error=lambda error: self.dispatch(TurnFailed(str(error))),
        )

    def _cancel_all_timers(self):
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _navigate(self, interview_id: str):
        if self._navigated:
            return
        self._cancel_all_timers()
        self._navigated = True
        url = self.results_path.format(interview_id=interview_id)
        logger.info(f"Navigating to {url}")
        self.navigator.navigate(url)

    @property
    def phase(self) -> Phase:
        return self.state.phase
