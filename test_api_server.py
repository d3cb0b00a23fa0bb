from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api_server import app, get_pipeline
from errors import ExternalServiceError
from rag_core import TurnAnswer, WikiRAGPipeline


@pytest.fixture
def rag():
    fake = MagicMock(spec=WikiRAGPipeline)
    fake.ask.return_value = TurnAnswer(answer="Batman is a superhero.", search_term="Batman")
    return fake


@pytest.fixture
def client(rag):
    app.dependency_overrides[get_pipeline] = lambda: rag
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_ask_returns_answer(client, rag):
    response = client.post("/ask", json={"question": "Who is Batman?"})

    assert response.status_code == 200
    assert response.json() == {"answer": "Batman is a superhero.", "search_term": "Batman"}
    rag.ask.assert_called_once_with("Who is Batman?", thread_id="1")


def test_ask_maps_external_errors_to_bad_gateway(client, rag):
    rag.ask.side_effect = ExternalServiceError("Language model failed: timeout")

    response = client.post("/ask", json={"question": "Who is Batman?"})

    assert response.status_code == 502
    assert response.json()["detail"] == "Language model failed: timeout"


def test_blank_question_is_rejected(client, rag):
    response = client.post("/ask", json={"question": "   "})

    assert response.status_code == 422
    rag.ask.assert_not_called()


def test_reset_forgets_conversation(client, rag):
    response = client.post("/reset")

    assert response.status_code == 200
    rag.reset.assert_called_once_with("1")
