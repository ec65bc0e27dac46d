import json

import pytest

from conftest import QUESTIONS
from interview.generator import QuestionGenerator
from llm.prompts import FALLBACK_QUESTIONS, fallback_questions
from models.schemas import GenerateRequest, InterviewStatus
from utils.errors import GenerationError, ParseDegradeWarning, ValidationError


def test_generate_persists_session(services, store, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS))
    session, questions = services.generator.generate(backend_request, owner="alice")

    assert questions == QUESTIONS
    stored = store.load(session.id)
    assert stored.questions == QUESTIONS
    assert stored.status == InterviewStatus.GENERATED
    assert stored.owner == "alice"
    assert stored.current_index == 0
    assert stored.transcript == []
    assert stored.feedback is None
    assert stored.parameters.skills == ["Go", "SQL"]
    assert stored.parameters.duration_minutes == 30


def test_prompt_carries_parameters(services, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS))
    services.generator.generate(backend_request, owner="alice")

    prompt = llm.prompts[0]
    assert "Backend Engineer" in prompt
    assert "Go, SQL" in prompt
    assert "EXACTLY 7" in prompt


def test_extra_questions_are_truncated(services, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS + ["An eighth question here?"]))
    _, questions = services.generator.generate(backend_request, owner="alice")
    assert questions == QUESTIONS


def test_fenced_output_is_accepted(services, llm, backend_request):
    llm.queue("```json\n" + json.dumps(QUESTIONS) + "\n```")
    with pytest.warns(ParseDegradeWarning):
        _, questions = services.generator.generate(backend_request, owner="alice")
    assert questions == QUESTIONS


def test_short_result_is_topped_up(services, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS[:5]), json.dumps(QUESTIONS[5:]))
    _, questions = services.generator.generate(backend_request, owner="alice")

    assert questions == QUESTIONS
    assert "EXACTLY 2 NEW questions" in llm.prompts[1]


def test_still_short_is_padded_from_bank(services, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS[:3]), json.dumps([]))
    _, questions = services.generator.generate(backend_request, owner="alice")

    assert len(questions) == 7
    assert questions[:3] == QUESTIONS[:3]
    assert questions[3] == "What is the most challenging problem you have solved using Go?"
    assert questions[4] == "What is the most challenging problem you have solved using SQL?"
    assert questions[5:] == FALLBACK_QUESTIONS["technical"][:2]
    assert all(q.strip() for q in questions)


def test_failed_top_up_still_pads(services, llm, backend_request):
    llm.queue(json.dumps(QUESTIONS[:6]), GenerationError("timeout"))
    _, questions = services.generator.generate(backend_request, owner="alice")
    assert len(questions) == 7
    assert questions[:6] == QUESTIONS[:6]


def test_duplicates_are_dropped(services, llm, backend_request):
    doubled = QUESTIONS[:3] + [QUESTIONS[0].upper()]
    llm.queue(json.dumps(doubled), json.dumps(QUESTIONS[3:]))
    _, questions = services.generator.generate(backend_request, owner="alice")
    assert questions == QUESTIONS


def test_generation_failure_creates_nothing(services, store, llm, backend_request):
    llm.queue(GenerationError("LLM unreachable"))
    with pytest.raises(GenerationError):
        services.generator.generate(backend_request, owner="alice")
    assert store.list("alice") == []


@pytest.mark.parametrize("changes, field", [
    ({"title": "  "}, "title"),
    ({"type": ""}, "type"),
    ({"experience_level": ""}, "experienceLevel"),
    ({"skills": []}, "skills"),
    ({"skills": ["", " "]}, "skills"),
    ({"duration": None}, "duration"),
    ({"duration": 0}, "duration"),
])
def test_validation(services, llm, store, backend_request, changes, field):
    request = backend_request.model_copy(update=changes)
    with pytest.raises(ValidationError) as exc_info:
        services.generator.generate(request, owner="alice")
    assert exc_info.value.field == field
    assert llm.prompts == []


def test_skills_accept_comma_string():
    request = GenerateRequest.model_validate({
        "title": "Data Engineer", "type": "Technical", "skills": "Python, Spark ,",
        "experienceLevel": "Senior", "duration": 45,
    })
    params = QuestionGenerator.validate(request)
    assert params.skills == ["Python", "Spark"]
    assert params.experience_level == "Senior"


def test_question_count_override(llm, store, backend_request):
    generator = QuestionGenerator(llm, store, question_count=3)
    llm.queue(json.dumps(QUESTIONS))
    session, questions = generator.generate(backend_request, owner="bob")
    assert questions == QUESTIONS[:3]
    assert store.load(session.id).question_count == 3


@pytest.mark.parametrize("count", [12, 25])
def test_padding_fills_sets_larger_than_bank(llm, store, backend_request, count):
    generator = QuestionGenerator(llm, store, question_count=count)
    llm.queue("[]", "[]")

    session, questions = generator.generate(backend_request, owner="bob")

    assert len(questions) == count
    assert len({q.lower() for q in questions}) == count
    assert all(q.strip() for q in questions)
    assert store.load(session.id).question_count == count


def test_padding_skips_questions_already_generated(llm, store, backend_request):
    bank = fallback_questions("Technical", ["Go", "SQL"])
    generator = QuestionGenerator(llm, store, question_count=len(bank) + 2)
    llm.queue(json.dumps(bank[:3]), "[]")

    _, questions = generator.generate(backend_request, owner="bob")

    assert len(questions) == len(bank) + 2
    assert len({q.lower() for q in questions}) == len(questions)


def test_fallback_bank_repeats_as_follow_ups():
    questions = fallback_questions("behavioral", ["Go", "go"], count=20)
    assert len(questions) >= 20
    assert len({q.lower() for q in questions}) == len(questions)
    assert questions[8].startswith("Follow-up 2: ")
