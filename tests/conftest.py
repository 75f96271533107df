"""Shared fixtures: an in-memory Mongo database and fake LLM/photo services."""

from types import SimpleNamespace

import mongomock
import pytest

from schemas import UserProfileCreate
from users import create_user_profile


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    yield client["habitai_test"]
    client.close()


@pytest.fixture
def make_user(db):
    """Create a profile and return its id."""

    def _make(user_id: str, name: str = "Alex") -> str:
        create_user_profile(db, user_id, UserProfileCreate(name=name, email=f"{user_id}@example.com"))
        return user_id

    return _make


class FakeStructuredLLM:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.prompts = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.result


class FakeLLM:
    """Stands in for ChatOpenAI: `.invoke()` for text, `.with_structured_output()` for JSON."""

    def __init__(self, content=None, structured=None, error=None):
        self.content = content
        self.structured = structured or FakeStructuredLLM(error=error)
        self.error = error
        self.prompts = []

    def with_structured_output(self, schema):
        return self.structured

    def invoke(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.content)


@pytest.fixture
def fake_llm_factory():
    return FakeLLM


@pytest.fixture
def photo_search():
    """Records queries and returns a fixed URL (or None when `result` is None)."""

    class _Search:
        def __init__(self):
            self.queries = []
            self.result = "https://images.pexels.com/photos/1/large.jpeg"

        def __call__(self, query):
            self.queries.append(query)
            return self.result

    return _Search()
