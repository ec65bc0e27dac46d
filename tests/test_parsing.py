import pytest

from llm.parsing import (
    ParseKind,
    parse_json_object,
    parse_question_list,
    parse_scoring,
    report_degraded,
)
from utils.cleaning import ResponseCleaner
from utils.errors import ParseDegradeWarning


class TestResponseCleaner:
    def test_extract_balanced_ignores_braces_in_strings(self):
        text = 'Sure! {"aiReply": "use a map {k: v}", "n": {"x": 1}} trailing }'
        assert ResponseCleaner.extract_balanced(text) == '{"aiReply": "use a map {k: v}", "n": {"x": 1}}'

    def test_extract_balanced_skips_unbalanced_opener(self):
        assert ResponseCleaner.extract_balanced('[ broken and then ["a", "b"]', "[") == '["a", "b"]'

    def test_extract_balanced_none_without_object(self):
        assert ResponseCleaner.extract_balanced("no json here") is None

    def test_strip_code_fences(self):
        assert ResponseCleaner.strip_code_fences('```json\n["a"]\n```') == '["a"]'

    def test_strip_list_marker(self):
        assert ResponseCleaner.strip_list_marker("  2. Explain goroutines") == "Explain goroutines"
        assert ResponseCleaner.strip_list_marker('- "Explain maps",') == "Explain maps"

    def test_strip_markup(self):
        assert ResponseCleaner.strip_markup("## Summary\n**Strong** `Go` skills") == "Summary\nStrong Go skills"


class TestJsonObject:
    def test_strict(self):
        result = parse_json_object('{"aiReply": "ok"}')
        assert result.kind == ParseKind.STRICT
        assert result.value == {"aiReply": "ok"}
        assert not result.degraded

    def test_fenced_is_recovered(self):
        result = parse_json_object('```json\n{"aiReply": "ok"}\n```')
        assert result.kind == ParseKind.RECOVERED
        assert result.value["aiReply"] == "ok"

    def test_object_in_chatter_is_recovered(self):
        result = parse_json_object('Here you go: {"aiReply": "ok", "endInterview": false} Hope it helps!')
        assert result.kind == ParseKind.RECOVERED
        assert result.value["endInterview"] is False

    def test_trailing_comma_is_recovered(self):
        result = parse_json_object('{"aiReply": "ok",}')
        assert result.kind == ParseKind.RECOVERED

    def test_plain_text_falls_back(self):
        result = parse_json_object("Nice answer, let's continue.")
        assert result.kind == ParseKind.FALLBACK
        assert result.value is None

    def test_json_array_is_not_an_object(self):
        assert parse_json_object('["a", "b"]').kind == ParseKind.FALLBACK


class TestQuestionList:
    def test_strict_truncates(self):
        result = parse_question_list('["q1 text", "q2 text", "q3 text"]', limit=2, min_length=3)
        assert result.kind == ParseKind.STRICT
        assert result.value == ["q1 text", "q2 text"]

    def test_fenced(self):
        result = parse_question_list('```json\n["Explain maps", "Explain slices"]\n```', 7, 6)
        assert result.kind == ParseKind.RECOVERED
        assert result.value == ["Explain maps", "Explain slices"]

    def test_line_split_fallback(self):
        text = (
            "Here are your questions:\n"
            "1. Explain how indexes work.\n"
            "2) Short\n"
            "- What is a deadlock?\n"
            "\n"
            "* Describe sharding strategies.\n"
        )
        result = parse_question_list(text, 7, 6)
        assert result.kind == ParseKind.FALLBACK
        assert result.value == [
            "Explain how indexes work.",
            "What is a deadlock?",
            "Describe sharding strategies.",
        ]

    def test_objects_in_array(self):
        result = parse_question_list('[{"question": "Explain maps"}, {"text": "Explain slices"}]', 7, 6)
        assert result.value == ["Explain maps", "Explain slices"]


class TestScoring:
    def test_preamble_and_fences(self):
        raw = 'Here is the evaluation:\n```json\n{"results": [{"score": 50}], "overallScore": 50}\n```'
        assert parse_scoring(raw) == {"results": [{"score": 50}], "overallScore": 50}

    def test_unparseable(self):
        assert parse_scoring("I cannot score these answers.") is None


def test_degraded_parse_warns():
    result = parse_json_object("plain text")
    with pytest.warns(ParseDegradeWarning):
        report_degraded(result, "turn")


def test_strict_parse_does_not_warn(recwarn):
    report_degraded(parse_json_object("{}"), "turn")
    assert not [w for w in recwarn if issubclass(w.category, ParseDegradeWarning)]
