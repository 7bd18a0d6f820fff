import httpx
import pytest
from fastapi.testclient import TestClient

from backend.api import app, get_activity_log, get_chat_service, get_settings
from backend.core.config import Settings
from backend.models.chat import ProviderSource
from backend.services.activity_service import AI_CHAT_REQUEST, ActivityLog
from backend.services.chat_service import ChatService
from backend.services.fallback_service import FALLBACK_NOTE
from backend.services.providers import OllamaProvider, ProviderSuccess, ProviderUnavailable, build_providers

STUDENT_HEADERS = {
    "X-User-Id": "u1",
    "X-User-Email": "student@school.edu",
    "X-User-Name": "Student",
}


class StaticProvider:
    def __init__(self, name, result):
        self.name = name
        self.result = result
        self.requests = []

    async def generate(self, chat_request):
        self.requests.append(chat_request)
        return self.result


@pytest.fixture
def activity_log():
    return ActivityLog(max_entries=50)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def providers():
    return [StaticProvider("openai", ProviderUnavailable("openai", "not configured"))]


@pytest.fixture
def client(activity_log, settings, providers):
    service = ChatService(providers, activity_log, default_model="gpt-4o-mini")
    app.dependency_overrides[get_chat_service] = lambda: service
    app.dependency_overrides[get_activity_log] = lambda: activity_log
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_models(client):
    assert client.get("/models").json() == {
        "models": ["gpt-4o", "gpt-4o-mini", "gpt-3.5-turbo"],
        "default": "gpt-4o-mini",
    }


def test_empty_message_is_rejected(client):
    response = client.post("/chat", json={"message": "", "attachments": []})
    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_body_of_wrong_shape_is_rejected(client):
    response = client.post("/chat", json=["not", "an", "object"])
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}

    response = client.post("/chat", json={"message": ["not", "text"]})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_null_message_is_required_error(client):
    response = client.post("/chat", json={"message": None})
    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


@pytest.mark.parametrize("attachments", [None, "notes.txt", {"name": "notes.txt"}])
def test_attachments_that_are_not_a_list_are_ignored(client, providers, attachments):
    response = client.post("/chat", json={"message": "hi", "attachments": attachments})

    assert response.status_code == 200
    assert providers[0].requests[0].attachments == []


def test_undecodable_json_is_internal_error(client):
    response = client.post("/chat", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_fallback_answer(client, activity_log):
    response = client.post("/chat", json={"message": "How do I solve a quadratic equation?"},
                           headers=STUDENT_HEADERS)

    body = response.json()
    assert response.status_code == 200
    assert body["source"] == "built-in"
    assert body["model"] == "fallback"
    assert body["note"] == FALLBACK_NOTE
    assert "math problem" in body["response"]
    assert activity_log.get_logs_by_action(AI_CHAT_REQUEST)[0].user_email == "student@school.edu"


@pytest.mark.parametrize("providers", [[
    StaticProvider("openai", ProviderSuccess("x = 2 or x = -2", "gpt-4o", ProviderSource.PRIMARY)),
]])
def test_primary_answer_has_no_note(client, providers):
    response = client.post("/chat", json={"message": "Solve x^2 = 4", "model": "gpt-4o"})

    assert response.json() == {"response": "x = 2 or x = -2", "model": "gpt-4o", "source": "openai"}


def test_multipart_attachment_without_message(client, providers):
    response = client.post(
        "/chat",
        data={"context": "Lab report"},
        files={"file": ("results.txt", b"trial 1: 4.2s", "text/plain")},
    )

    assert response.status_code == 200
    sent = providers[0].requests[0]
    assert sent.context == "Lab report"
    assert sent.attachments[0].name == "results.txt"
    assert sent.attachments[0].content == "trial 1: 4.2s"
    assert sent.attachments[0].size == 13


def test_anonymous_chat_is_not_logged(client, activity_log):
    client.post("/chat", json={"message": "hello"})
    assert len(activity_log) == 0


def test_activity_requires_admin_token(client, settings):
    settings.ADMIN_TOKEN = "secret"

    response = client.get("/activity")
    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}

    assert client.get("/activity", headers={"X-Admin-Token": "secret"}).status_code == 200


def test_activity_filters(client, activity_log):
    client.post("/chat", json={"message": "hello"}, headers=STUDENT_HEADERS)
    client.post("/chat", json={"message": "hello"},
                headers={"X-User-Email": "other@school.edu", "X-Forwarded-For": "203.0.113.9"})

    everything = client.get("/activity").json()
    assert len(everything) == 4
    assert everything[0]["user_id"] == "other@school.edu"
    assert everything[0]["ip_address"] == "203.0.113.9"
    assert everything[0]["user_name"] == "Unknown User"

    mine = client.get("/activity", params={"user_id": "u1"}).json()
    assert {entry["user_email"] for entry in mine} == {"student@school.edu"}

    requests_only = client.get("/activity", params={"action": AI_CHAT_REQUEST}).json()
    assert len(requests_only) == 2


def test_configured_providers_fall_back_when_ollama_errors(activity_log):
    settings = Settings()
    settings.OPENAI_API_KEY = None
    providers = build_providers(settings)
    ollama_calls = []

    async def ollama_down(request):
        ollama_calls.append(str(request.url))
        return httpx.Response(500, json={"error": "model not loaded"})

    ollama = next(p for p in providers if isinstance(p, OllamaProvider))
    ollama._client = httpx.AsyncClient(transport=httpx.MockTransport(ollama_down))

    service = ChatService(providers, activity_log, default_model=settings.DEFAULT_MODEL)
    app.dependency_overrides[get_chat_service] = lambda: service
    try:
        response = TestClient(app).post("/chat", json={"message": "Help with my essay outline"})
    finally:
        app.dependency_overrides.clear()

    body = response.json()
    assert response.status_code == 200
    assert body["source"] == "built-in"
    assert body["note"] == FALLBACK_NOTE
    assert ollama_calls == ["http://localhost:11434/api/generate"]
