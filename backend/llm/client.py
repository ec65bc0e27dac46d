"""
LLM Client wrapper for a llama.cpp-compatible REST API.
Handles communication with the text-generation server and retries.
"""
import time
import logging
from typing import Any, Dict, Optional, Protocol
from dataclasses import dataclass

import requests

from utils.config import config
from utils.errors import GenerationError

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    def complete(self, prompt: str) -> str: ...


@dataclass
class LLMResponse:
    """Structured response from LLM."""
    content: str
    is_valid: bool
    raw_response: Dict[str, Any]
    tokens_used: int = 0


class LLMClient:
    """
    Client for the /completion endpoint.

    The only contract the interview services rely on is complete(prompt) -> str;
    any object with that method can stand in for this client.
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url or config.llm.base_url
        self.completion_url = f"{self.base_url}{config.llm.completion_endpoint}"
        self.timeout = config.llm.timeout
        self.max_retries = config.llm.max_retries
        self.http = session or requests.Session()
        logger.info(f"LLM Client initialized: {self.completion_url} (timeout={self.timeout}s)")

    def _make_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make HTTP request to LLM server with retries."""
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.http.post(
                    self.completion_url,
                    json=payload,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                last_error = e
                if attempt == self.max_retries:
                    break
                # Timeouts back off longer than refused or malformed responses
                delay = (1.0 if isinstance(e, requests.exceptions.Timeout) else 0.5) * (attempt + 1)
                logger.warning(f"LLM request failed (attempt {attempt + 1}), retrying in {delay}s: {e}")
                time.sleep(delay)

        raise GenerationError(
            f"Failed to reach LLM server after {self.max_retries + 1} attempts: {last_error}"
        )

    def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """
        One /completion call. Sampling settings not given here come from
        config.llm.

        Raises:
            GenerationError: the server could not be reached after retries
        """
        payload = {
            "prompt": prompt,
            "n_predict": max_tokens or config.llm.default_max_tokens,
            "temperature": config.llm.default_temperature if temperature is None else temperature,
            "top_p": config.llm.default_top_p,
            "repeat_penalty": config.llm.default_repeat_penalty,
        }
        response = self._make_request(payload)
        content = response.get("content", "") or ""
        tokens = response.get("tokens_predicted", 0)

        return LLMResponse(
            content=content,
            is_valid=bool(content.strip()),
            raw_response=response,
            tokens_used=tokens
        )

    def complete(self, prompt: str, temperature: Optional[float] = None) -> str:
        """
        Text-in, text-out call used by all interview services.

        Raises:
            GenerationError: on transport failure or an empty completion
        """
        response = self.generate(prompt, temperature=temperature)
        if not response.is_valid:
            logger.warning(f"LLM returned empty content: {response.raw_response}")
            raise GenerationError("LLM returned an empty completion")

        logger.info(f"LLM completion ({response.tokens_used} tokens): {response.content[:120]}...")
        return response.content

    def health_check(self) -> bool:
        """Check if LLM server is responding."""
        try:
            return self.generate("Hello", max_tokens=5).is_valid
        except GenerationError:
            return False
