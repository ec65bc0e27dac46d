"""
asyncio and requests adapters for the voice controller.

Blocking HTTP calls run in the loop's default executor; their results are
delivered back on the loop thread so controller state is only ever touched
from one thread.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from utils.config import config

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """Silence timers on an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)


class HttpInterviewTransport:
    """
    Calls the interview HTTP API without blocking the event loop.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        session: Optional[requests.Session] = None,
        user_id: Optional[str] = None,
    ):
        self.base_url = (base_url or config.voice.server_url).rstrip("/")
        self.loop = loop or asyncio.get_running_loop()
        self.http = session or requests.Session()
        self.timeout = config.voice.request_timeout
        if user_id:
            self.http.headers["X-User-Id"] = user_id

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.http.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _in_background(
        self,
        path: str,
        payload: Dict[str, Any],
        on_success: Callable[[Dict[str, Any]], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        future = self.loop.run_in_executor(None, self._post, path, payload)

        def done(f: asyncio.Future):
            error = f.exception()
            if error is not None:
                logger.error(f"POST {path} failed: {error}")
                on_error(error)
            else:
                on_success(f.result())

        future.add_done_callback(done)

    def submit_turn(self, payload, on_success, on_error) -> None:
        self._in_background("/interview/voice-respond", payload, on_success, on_error)

    def save_answers(self, interview_id: str, answers: List[str], on_done: Callable[[], None]) -> None:
        # Best effort: navigation follows whether or not scoring succeeded
        self._in_background(
            "/interview/save-answers",
            {"interviewId": interview_id, "answers": answers},
            on_success=lambda body: on_done(),
            on_error=lambda error: on_done(),
        )

    def ask_doubt(self, question: str, doubt: str, on_success, on_error) -> None:
        self._in_background(
            "/interview/doubt",
            {"question": question, "doubt": doubt},
            on_success=lambda body: on_success(body.get("answer") or ""),
            on_error=on_error,
        )
