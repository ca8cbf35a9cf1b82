"""
Pytest configuration and shared fixtures for ContractLens tests.
"""

import json
import os

# Settings are read at import time, so the environment must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LLM_API_KEY"] = "test-key"
os.environ["ENVIRONMENT"] = "development"

import pytest
import requests
from fastapi.testclient import TestClient

from contractlens.agents.analysis_pipeline import AnalysisPipeline
from contractlens.database import Base, SessionLocal, engine
from contractlens.llm_client import CompletionResult
from contractlens.main import app
from contractlens.routes.auth import create_access_token
from contractlens.routes.chat import get_chat_service
from contractlens.routes.documents import get_analysis_service, get_file_handler
from contractlens.services.analysis_service import AnalysisService
from contractlens.services.chat_service import ChatService
from contractlens.services.file_handler import FileHandler
import contractlens.models  # noqa: F401

CONTRACT_TEXT = (
    "SERVICES AGREEMENT\n"
    "\n"
    "The term is 12 months. Liability is capped at $500.\n"
    "Payment is due within 30 days of invoice. Late payments accrue interest at 5% per month.\n"
    "Either party may terminate this agreement with 10 days written notice.\n"
    "This agreement renews automatically for successive one-year terms."
)


def build_analysis(document, highlights=None, **overrides):
    """A well-formed model response for ``document``."""

    def section(text, **fields):
        start = document.index(text)
        data = {
            "text": text,
            "startPosition": start,
            "endPosition": start + len(text),
            "riskLevel": 5,
            "type": "general",
            "severity": "medium",
            "comment": "Worth a closer look",
            "suggestion": "Negotiate",
        }
        data.update(fields)
        return data

    if highlights is None:
        highlights = [
            section("Liability is capped at $500.", type="liability", riskLevel=8, severity="high"),
            section("Late payments accrue interest at 5% per month.", type="payment", riskLevel=6),
        ]

    analysis = {
        "summary": "A short services agreement.",
        "keyObligations": ["Provider delivers services", "Customer pays within 30 days"],
        "riskAssessment": {
            "termination": 3,
            "liability": 8,
            "intellectualProperty": 1,
            "payment": 6,
            "renewal": 4,
        },
        "highlightedSections": highlights,
        "aiComments": [
            {"position": 0, "text": "Standard header", "type": "info", "severity": "low"},
        ],
        "documentStructure": {"sections": []},
        "plainEnglishExplanations": {"liability": "Damages are limited to $500."},
        "confidenceScore": 85,
    }
    analysis.update(overrides)
    return analysis


class FakeCompletion:
    """Stands in for the chat completions endpoint."""

    def __init__(self, response=None):
        self.response = response
        self.calls = []

    def __call__(self, messages, model=None, temperature=None, max_tokens=None, response_format=None, timeout=None):
        self.calls.append({"messages": messages, "model": model, "response_format": response_format})
        if isinstance(self.response, Exception):
            raise self.response
        content = self.response if isinstance(self.response, str) else json.dumps(self.response)
        return CompletionResult(content=content, usage={"total_tokens": 42})


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, body=None, status_code=200, lines=None):
        self.body = body
        self.status_code = status_code
        self.lines = lines or []
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body

    def iter_lines(self, decode_unicode=False):
        yield from self.lines

    def close(self):
        self.closed = True


def stream_line(content):
    """One server-sent-event line carrying a content delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


class FakeStream:
    """Stands in for the streaming chat endpoint."""

    def __init__(self, deltas=None, error=None):
        self.deltas = deltas if deltas is not None else ["The cap ", "is $500."]
        self.error = error
        self.calls = []

    def __call__(self, messages, model=None, temperature=None, max_tokens=None, timeout=None):
        self.calls.append({"messages": messages, "model": model})
        for delta in self.deltas:
            yield delta
        if self.error is not None:
            raise self.error


@pytest.fixture
def contract_text():
    return CONTRACT_TEXT


@pytest.fixture
def analysis_factory():
    return build_analysis


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test on the shared in-memory engine."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_completion():
    return FakeCompletion(response=build_analysis(CONTRACT_TEXT))


@pytest.fixture
def fake_stream():
    return FakeStream()


@pytest.fixture
def file_handler(tmp_path):
    return FileHandler(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def client(file_handler, fake_completion, fake_stream):
    """TestClient with the model and storage replaced by fakes."""
    analysis_service = AnalysisService(
        pipeline=AnalysisPipeline(completion_fn=fake_completion),
        file_handler=file_handler,
    )
    chat_service = ChatService(stream_fn=fake_stream)

    app.dependency_overrides[get_file_handler] = lambda: file_handler
    app.dependency_overrides[get_analysis_service] = lambda: analysis_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service

    yield TestClient(app)

    app.dependency_overrides.clear()


def auth_headers(user_id="user-1"):
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


@pytest.fixture
def headers():
    return auth_headers("user-1")


@pytest.fixture
def other_headers():
    return auth_headers("user-2")


@pytest.fixture
def upload(client, headers):
    """Upload a document and return its JSON representation."""

    def _upload(text=CONTRACT_TEXT, filename="contract.txt", content_type="text/plain", request_headers=None):
        response = client.post(
            "/api/v1/documents/upload",
            files={"file": (filename, text.encode("utf-8") if isinstance(text, str) else text, content_type)},
            headers=request_headers or headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["document"]

    return _upload


@pytest.fixture
def analyzed(client, headers, upload):
    """An uploaded and analyzed document; returns (document, analysis)."""
    document = upload()
    response = client.post(f"/api/v1/documents/{document['id']}/analyze", headers=headers)
    assert response.status_code == 200, response.text
    return document, response.json()["analysis"]
