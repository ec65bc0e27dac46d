"""
Response cleaning utilities for text-generation outputs.

The generation backend gives no structural guarantee: a reply may be strict
JSON, JSON wrapped in markdown code fences, JSON buried in chatter, or free
text. These helpers strip the common wrappers and locate embedded JSON.
"""
import re
from typing import Optional


class ResponseCleaner:
    """
    Cleans raw model output before and after JSON parsing.
    """

    CODE_FENCE = re.compile(r"```(?:json|JSON)?")
    THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
    LIST_MARKER = re.compile(r"^[\-\*•\d\.\)]+\s*")
    PREAMBLE = re.compile(r"^Here.*?:", re.IGNORECASE)
    CONTROL_CHARS = re.compile(r"[\u0000-\u001F]+")

    @classmethod
    def strip_reasoning(cls, text: str) -> str:
        """Remove <think> blocks emitted by reasoning models."""
        if not text:
            return ""
        return cls.THINK_BLOCK.sub("", text).strip()

    @classmethod
    def strip_code_fences(cls, text: str) -> str:
        """Remove ```json / ``` markers, keeping the content between them."""
        if not text:
            return ""
        return cls.CODE_FENCE.sub("", cls.strip_reasoning(text)).strip()

    @classmethod
    def fix_trailing_commas(cls, text: str) -> str:
        """Drop commas directly before a closing bracket or brace."""
        return re.sub(r",\s*([}\]])", r"\1", text)

    @classmethod
    def clean_scoring_text(cls, text: str) -> str:
        """
        Cleanup pass for batch scoring output: fences, a leading
        "Here is ...:" sentence and raw control characters.
        """
        cleaned = cls.strip_code_fences(text)
        cleaned = cls.PREAMBLE.sub("", cleaned)
        cleaned = cls.CONTROL_CHARS.sub("", cleaned)
        return cleaned.strip()

    @classmethod
    def extract_balanced(cls, text: str, opener: str = "{") -> Optional[str]:
        """
        Find the first balanced {...} (or [...]) substring.

        Brackets inside JSON string literals are ignored so that a reply such
        as {"aiReply": "use a map {k: v}"} is extracted whole.
        """
        closer = "}" if opener == "{" else "]"
        start = text.find(opener) if text else -1

        while start != -1:
            depth = 0
            in_string = False
            escaped = False
            for pos in range(start, len(text)):
                char = text[pos]
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == "\\":
                        escaped = True
                    elif char == '"':
                        in_string = False
                    continue
                if char == '"':
                    in_string = True
                elif char == opener:
                    depth += 1
                elif char == closer:
                    depth -= 1
                    if depth == 0:
                        return text[start:pos + 1]
            # Unbalanced from this opener, try the next one
            start = text.find(opener, start + 1)

        return None

    @classmethod
    def strip_list_marker(cls, line: str) -> str:
        """Remove a leading bullet or "1." / "2)" numbering from a line."""
        cleaned = cls.LIST_MARKER.sub("", line.strip()).strip()
        # Leftovers from a half-formed JSON array: "question",
        return cleaned.rstrip(",").strip().strip('"').strip()

    @classmethod
    def strip_markup(cls, text: str, chars: str = "*#_`") -> str:
        """Remove markdown markup characters from free text."""
        if not text:
            return ""
        cleaned = cls.strip_reasoning(text)
        return re.sub(f"[{re.escape(chars)}]", "", cleaned).strip()
