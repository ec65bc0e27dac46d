import json

import pytest
from fastapi.testclient import TestClient

from main import build_services, create_app
from models.schemas import GenerateRequest
from storage.memory import InMemorySessionStore

QUESTIONS = [
    "Explain how a hash map handles collisions.",
    "How would you design a rate limiter for a public API?",
    "Describe how database indexes speed up queries.",
    "How do goroutines differ from OS threads?",
    "Walk me through debugging a slow SQL query.",
    "What happens when a transaction deadlocks?",
    "How would you shard a users table?",
]


class ScriptedLLM:
    """Text generator that replays queued responses and records prompts.

    A queued callable is invoked at call time and its return value is used.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def complete(self, prompt):
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError(f"Unexpected LLM call: {prompt[:80]}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            # Runs while the call is "in flight", then supplies the text
            return item()
        return item


def turn_json(reply="Good answer.", next_question=None, end=False):
    return json.dumps({"aiReply": reply, "nextQuestion": next_question, "endInterview": end})


def scoring_json(scores, overall=70):
    return json.dumps({
        "results": [{"score": s, "explanation": f"Scored {s}"} for s in scores],
        "overallScore": overall,
    })


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def services(store, llm):
    return build_services(store=store, llm=llm)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def backend_request():
    return GenerateRequest(
        title="Backend Engineer",
        type="Technical",
        skills=["Go", "SQL"],
        experience_level="Mid",
        duration=30,
    )


@pytest.fixture
def generated(services, llm, backend_request):
    """A freshly generated session with the seven QUESTIONS."""
    llm.queue(json.dumps(QUESTIONS))
    session, _ = services.generator.generate(backend_request, owner="alice")
    return session


@pytest.fixture
def started(services, generated):
    """The generated session after startAttempt."""
    return services.conversation.start_attempt(generated.id)
