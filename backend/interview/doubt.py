"""
Stateless clarifying-question answers ("ask a doubt").
"""
import logging

from llm.client import TextGenerator
from llm.prompts import Prompts
from utils.cleaning import ResponseCleaner
from utils.errors import ValidationError

logger = logging.getLogger(__name__)


class DoubtResponder:
    """Answers a candidate's clarifying question without touching any session."""

    def __init__(self, llm: TextGenerator):
        self.llm = llm

    def answer(self, question: str, doubt: str) -> str:
        if not (doubt or "").strip():
            raise ValidationError("doubt must not be empty", field="doubt")

        raw = self.llm.complete(Prompts.answer_doubt(question or "", doubt.strip()))
        answer = ResponseCleaner.strip_markup(raw)
        logger.info(f"Answered doubt ({len(answer)} chars)")
        return answer or "No answer"
