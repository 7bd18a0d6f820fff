import asyncio
import json
import time

import httpx
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda

from backend.models.chat import Attachment, ChatRequest, ProviderSource
from backend.services.providers import (
    EMPTY_COMPLETION,
    OllamaProvider,
    OpenAIProvider,
    ProviderSuccess,
    ProviderUnavailable,
)


def ollama_with(handler, timeout=10.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(base_url="http://ollama.test", model="llama3.2:1b", timeout=timeout, client=client)


def test_ollama_success():
    seen = {}

    async def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "Use the quadratic formula."})

    provider = ollama_with(handler)
    result = asyncio.run(provider.generate(ChatRequest(message="Solve x^2 - 4 = 0", context="Algebra HW")))

    assert result == ProviderSuccess("Use the quadratic formula.", "llama3.2:1b", ProviderSource.SECONDARY)
    assert seen["url"] == "http://ollama.test/api/generate"
    assert seen["body"]["stream"] is False
    assert seen["body"]["options"] == {"temperature": 0.5, "top_p": 0.8, "max_tokens": 500}
    assert "Task: Algebra HW" in seen["body"]["prompt"]
    assert "Question: Solve x^2 - 4 = 0" in seen["body"]["prompt"]


def test_ollama_error_status_is_unavailable():
    async def handler(request):
        return httpx.Response(503, text="loading model")

    result = asyncio.run(ollama_with(handler).generate(ChatRequest(message="hi")))
    assert isinstance(result, ProviderUnavailable)
    assert "503" in result.reason


def test_ollama_invalid_json_is_unavailable():
    async def handler(request):
        return httpx.Response(200, text="not json")

    result = asyncio.run(ollama_with(handler).generate(ChatRequest(message="hi")))
    assert isinstance(result, ProviderUnavailable)


def test_ollama_empty_response_is_unavailable():
    async def handler(request):
        return httpx.Response(200, json={"response": "   "})

    result = asyncio.run(ollama_with(handler).generate(ChatRequest(message="hi")))
    assert isinstance(result, ProviderUnavailable)


def test_ollama_connection_error_is_unavailable():
    async def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = asyncio.run(ollama_with(handler).generate(ChatRequest(message="hi")))
    assert isinstance(result, ProviderUnavailable)


def test_ollama_slow_answer_is_abandoned_at_the_deadline():
    async def handler(request):
        await asyncio.sleep(2)
        return httpx.Response(200, json={"response": "too late"})

    provider = ollama_with(handler, timeout=0.1)
    started = time.monotonic()
    result = asyncio.run(provider.generate(ChatRequest(message="hi")))

    assert isinstance(result, ProviderUnavailable)
    assert "timed out" in result.reason
    assert time.monotonic() - started < 1.5


def test_openai_without_key_is_unavailable():
    provider = OpenAIProvider(api_key=None)
    result = asyncio.run(provider.generate(ChatRequest(message="hi")))

    assert not provider.is_configured
    assert isinstance(result, ProviderUnavailable)


def test_openai_token_budget_depends_on_model():
    provider = OpenAIProvider(api_key="sk-test")
    assert provider.max_tokens_for("gpt-4o") == 1200
    assert provider.max_tokens_for("gpt-4o-mini") == 800
    assert provider.max_tokens_for("gpt-3.5-turbo") == 800


def test_openai_user_content_includes_context_and_attachments():
    provider = OpenAIProvider(api_key="sk-test")
    content = provider.build_user_content(ChatRequest(
        message="Check my notes",
        context="Biology quiz",
        attachments=[
            Attachment(name="notes.txt", type="text/plain", content="Mitochondria " * 200),
            Attachment(name="diagram.png", type="image/png"),
        ],
    ))

    assert content.startswith('Context: I\'m working on "Biology quiz"\n\nCheck my notes')
    assert "\n\nAttached files:\n- notes.txt (text/plain)\nContent: " in content
    assert "- diagram.png (image/png)" in content
    preview = content.split("Content: ")[1].split("...")[0]
    assert len(preview) == 1000


def test_openai_success_uses_requested_model(monkeypatch):
    provider = OpenAIProvider(api_key="sk-test")
    used = {}

    def fake_llm(model):
        used["model"] = model
        return RunnableLambda(lambda prompt_value: AIMessage(content=f"echo: {prompt_value.to_messages()[-1].content}"))

    monkeypatch.setattr(provider, "create_llm", fake_llm)
    result = asyncio.run(provider.generate(ChatRequest(message="What is 2+2?", model="gpt-4o")))

    assert used["model"] == "gpt-4o"
    assert result == ProviderSuccess("echo: What is 2+2?", "gpt-4o", ProviderSource.PRIMARY)


def test_openai_empty_completion_gets_apology(monkeypatch):
    provider = OpenAIProvider(api_key="sk-test")
    monkeypatch.setattr(provider, "create_llm", lambda model: RunnableLambda(lambda _: AIMessage(content="")))

    result = asyncio.run(provider.generate(ChatRequest(message="hi")))
    assert isinstance(result, ProviderSuccess)
    assert result.text == EMPTY_COMPLETION
    assert result.model == "gpt-4o-mini"


def test_openai_failure_is_unavailable(monkeypatch):
    provider = OpenAIProvider(api_key="sk-test")

    def boom(_):
        raise RuntimeError("401 invalid api key")

    monkeypatch.setattr(provider, "create_llm", lambda model: RunnableLambda(boom))

    result = asyncio.run(provider.generate(ChatRequest(message="hi")))
    assert result == ProviderUnavailable("openai", "401 invalid api key")
