import logging

import pytest

from conftest import QUESTIONS
from voice import ClientState, Phase, VoiceInterviewController


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by an explicit clock."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


class FakeRecognizer:
    def __init__(self, fail_on_start=False):
        self.fail_on_start = fail_on_start
        self.starts = 0
        self.stops = 0
        self.callbacks = None
        self.doubt_callbacks = None

    def start(self, on_result, on_end, on_error):
        self.starts += 1
        if self.fail_on_start:
            raise RuntimeError("recognition has already started")
        self.callbacks = (on_result, on_end, on_error)

    def stop(self):
        self.stops += 1

    def capture_once(self, on_text, on_error):
        self.doubt_callbacks = (on_text, on_error)

    def say(self, text, is_final=True):
        self.callbacks[0](text, is_final)


class FakeTransport:
    def __init__(self):
        self.submissions = []
        self.saved = []
        self.doubts = []

    def submit_turn(self, payload, on_success, on_error):
        self.submissions.append((payload, on_success, on_error))

    def reply(self, ai_reply, next_question=None, end=False):
        _, on_success, _ = self.submissions[-1]
        on_success({"aiReply": ai_reply, "nextQuestion": next_question, "endInterview": end})

    def fail(self, error):
        _, _, on_error = self.submissions[-1]
        on_error(error)

    def save_answers(self, interview_id, answers, on_done):
        self.saved.append((interview_id, answers))
        on_done()

    def ask_doubt(self, question, doubt, on_success, on_error):
        self.doubts.append((question, doubt))
        on_success("It means the average case.")


class FakeSynthesizer:
    """Speech that completes only when the test says so."""

    def __init__(self):
        self.spoken = []
        self.pending = []
        self.cancels = 0

    def speak(self, text, on_done):
        self.spoken.append(text)
        self.pending.append(on_done)

    def finish(self):
        self.pending.pop(0)()

    def cancel(self):
        self.cancels += 1
        self.pending.clear()


class RecordingView:
    def __init__(self):
        self.renders = 0
        self.interim = []
        self.doubts = []
        self.errors = []

    def render(self, state):
        self.renders += 1

    def show_interim(self, text):
        self.interim.append(text)

    def show_doubt(self, text):
        self.doubts.append(text)

    def show_error(self, message):
        self.errors.append(message)


class Navigator:
    def __init__(self):
        self.urls = []

    def navigate(self, url):
        self.urls.append(url)


@pytest.fixture
def parts():
    return {
        "recognizer": FakeRecognizer(),
        "transport": FakeTransport(),
        "scheduler": ManualScheduler(),
        "navigator": Navigator(),
        "view": RecordingView(),
    }


def make_controller(parts, synthesizer=None, **state_changes):
    state = ClientState(interview_id="abc", questions=tuple(QUESTIONS), **state_changes)
    return VoiceInterviewController(state, synthesizer=synthesizer, **parts)


def test_single_submission_after_pause(parts):
    controller = make_controller(parts)
    recognizer, transport, scheduler = parts["recognizer"], parts["transport"], parts["scheduler"]

    controller.start()
    assert controller.phase == Phase.LISTENING
    assert recognizer.starts == 1

    recognizer.say("I would use")
    scheduler.advance(1.0)
    recognizer.say("a hash map")

    scheduler.advance(4.9)
    assert transport.submissions == []

    scheduler.advance(0.2)
    assert len(transport.submissions) == 1
    payload = transport.submissions[0][0]
    assert payload["interviewId"] == "abc"
    assert payload["questionIndex"] == 0
    assert payload["userUtterance"] == "I would use a hash map"
    assert payload["transcript"][-1]["who"] == "user"
    assert recognizer.stops == 1
    assert controller.phase == Phase.SUBMITTING

    scheduler.advance(30)
    assert len(transport.submissions) == 1
    assert scheduler.pending == []


def test_reply_then_next_question(parts):
    controller = make_controller(parts)
    recognizer, transport, scheduler = parts["recognizer"], parts["transport"], parts["scheduler"]

    controller.start()
    recognizer.say("Chaining")
    scheduler.advance(5)
    transport.reply("Good.", QUESTIONS[1])

    assert controller.state.current == 1
    assert controller.phase == Phase.LISTENING
    assert recognizer.starts == 2
    assert [line.who for line in controller.state.transcript] == ["user", "ai"]


def test_end_interview_navigates_once(parts):
    controller = make_controller(parts)
    recognizer, transport, scheduler = parts["recognizer"], parts["transport"], parts["scheduler"]

    controller.start()
    recognizer.say("Chaining")
    scheduler.advance(5)
    transport.reply("That's all.", None, True)

    assert parts["navigator"].urls == ["/dashboard/abc"]
    assert controller.navigated
    controller.finish()
    assert parts["navigator"].urls == ["/dashboard/abc"]
    assert transport.saved == []


def test_speech_completion_drives_listening(parts):
    synthesizer = FakeSynthesizer()
    controller = make_controller(parts, synthesizer=synthesizer)

    controller.start()
    assert synthesizer.spoken == [QUESTIONS[0]]
    assert controller.phase == Phase.SPEAKING
    assert parts["recognizer"].starts == 0

    synthesizer.finish()
    assert controller.phase == Phase.LISTENING
    assert parts["recognizer"].starts == 1


def test_stop_cancels_question_speech(parts):
    synthesizer = FakeSynthesizer()
    controller = make_controller(parts, synthesizer=synthesizer)

    controller.start()
    controller.stop()
    assert controller.phase == Phase.IDLE
    assert synthesizer.cancels == 1


def test_stop_while_listening_disarms_timer(parts):
    controller = make_controller(parts)
    recognizer = parts["recognizer"]

    controller.start()
    recognizer.say("Half an answer")
    controller.stop()
    parts["scheduler"].advance(10)

    assert controller.phase == Phase.IDLE
    assert parts["transport"].submissions == []


def test_turn_failure_shows_error(parts):
    controller = make_controller(parts)
    controller.start()
    parts["recognizer"].say("Chaining")
    parts["scheduler"].advance(5)
    parts["transport"].fail(ConnectionError("server down"))

    assert controller.phase == Phase.IDLE
    assert parts["view"].errors
    assert controller.state.answers[0] == "Chaining"


def test_finish_saves_then_navigates(parts):
    controller = make_controller(parts)
    controller.start()
    parts["recognizer"].say("Chaining")
    controller.finish()

    assert parts["transport"].saved == [("abc", ["Chaining"])]
    assert parts["navigator"].urls == ["/dashboard/abc"]
    assert parts["scheduler"].pending == []


def test_events_after_navigation_are_ignored(parts):
    controller = make_controller(parts)
    controller.finish()
    renders = parts["view"].renders

    controller.start()
    controller.next()
    assert parts["view"].renders == renders
    assert controller.phase == Phase.FINISHED


def test_recognition_restarts_after_platform_end(parts):
    controller = make_controller(parts)
    recognizer = parts["recognizer"]
    controller.start()

    recognizer.callbacks[1]()
    assert recognizer.starts == 2


def test_recognizer_start_error_is_logged(parts, caplog):
    parts["recognizer"] = FakeRecognizer(fail_on_start=True)
    controller = make_controller(parts)

    with caplog.at_level(logging.WARNING):
        controller.start()

    assert controller.phase == Phase.LISTENING
    assert "Recognition start failed" in caplog.text


def test_interim_results_reach_view(parts):
    controller = make_controller(parts)
    controller.start()
    parts["recognizer"].say("I would", is_final=False)
    assert parts["view"].interim == ["I would"]


def test_doubt_round_trip(parts):
    controller = make_controller(parts)
    controller.ask_doubt()

    on_text, _ = parts["recognizer"].doubt_callbacks
    on_text("Average or worst case?")

    assert parts["transport"].doubts == [(QUESTIONS[0], "Average or worst case?")]
    assert parts["view"].doubts == ["It means the average case."]
    assert not controller.state.doubt_busy


def test_custom_results_path(parts):
    state = ClientState(interview_id="abc", questions=tuple(QUESTIONS))
    controller = VoiceInterviewController(state, results_path="/results?id={interview_id}", **parts)
    controller.finish()
    assert parts["navigator"].urls == ["/results?id=abc"]
