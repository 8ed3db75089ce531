import json
import os

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from screening.models.models import Profile, Rubric
from screening.models.settings import LLMSettings, ProcessingSettings
from screening.services.evaluator import ProfileEvaluator
from screening.services.state import AppState


class FakeCompletionClient:
    """Stands in for CompletionClient; answers every prompt with ``responder(prompt)``."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda prompt: "{}")
        self.calls = []

    async def complete(self, prompt, system, model=None, temperature=None, max_tokens=None):
        self.calls.append({"prompt": prompt, "system": system, "model": model})
        return self.responder(prompt)


def make_profile(name="Jane Doe", email="jane@example.com", **extra):
    return Profile(name=name, email=email, **extra)


def make_rubric(rubric_id="backend", item_ids=("experience", "skills"), title="Backend Engineer"):
    return Rubric(
        id=rubric_id,
        title=title,
        items=[
            {
                "id": item_id,
                "description": f"How strong is the candidate's {item_id}?",
                "scoreDescriptions": {str(level): f"level {level}" for level in range(1, 6)},
            }
            for item_id in item_ids
        ],
    )


def uniform_response(item_ids, score, slots=None):
    """Completion text giving ``score`` to every item (optionally under batch slots)."""
    items = {item_id: {"score": score, "explanation": "looks right"} for item_id in item_ids}
    if slots is None:
        return json.dumps(items)
    return json.dumps({f"profile_{n}": items for n in range(1, slots + 1)})


@pytest.fixture
def profiles():
    return [
        make_profile("Ada Lovelace", "ada@example.com"),
        make_profile("Alan Turing", "alan@example.com"),
        make_profile("Grace Hopper", "grace@example.com"),
    ]


@pytest.fixture
def rubric():
    return make_rubric()


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def evaluator(fake_client):
    return ProfileEvaluator(
        fake_client,
        LLMSettings(model_name="test-model"),
        ProcessingSettings(batch_size=2, max_concurrent=2, dispatch_delay=0),
    )


@pytest.fixture
def state(profiles):
    return AppState(profiles)
