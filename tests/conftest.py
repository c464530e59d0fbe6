"""Shared fixtures: Flask test client, isolated environment, Gemini doubles."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

import app as app_module


SUMMARY_JSON = (
    'Here is the analysis:\n```json\n'
    '{"simplifiedText": "You are renting an apartment for one year.", '
    '"keyPoints": ["Rent is due monthly", "Deposit is refundable"]}\n```'
)
MASKED_TEXT = "This lease is between [NAME] and [NAME]. SSN: [SSN]."


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep real credentials out of every test."""
    monkeypatch.delenv("GOOGLE_GENERATIVE_AI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "test-key-123")
    return "test-key-123"


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def make_model(*replies):
    """GenerativeModel double answering each generate_content call in turn."""
    model = MagicMock()
    model.generate_content.side_effect = [
        r if isinstance(r, Exception) else SimpleNamespace(text=r) for r in replies
    ]
    return model


@pytest.fixture
def fake_genai():
    """Patch google.generativeai inside the analysis module."""
    with patch("analysis.genai") as genai:
        genai.GenerativeModel.return_value = make_model(SUMMARY_JSON, MASKED_TEXT)
        yield genai
