import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, PromptTemplate
from langchain_openai import ChatOpenAI

from ..core.config import Settings
from ..models.chat import ChatRequest, ProviderSource
from .file_service import FileService

TUTOR_SYSTEM_PROMPT = (
    "You are a helpful AI tutor assistant for students. Help with homework, explain concepts "
    "clearly, and provide step-by-step solutions. Be encouraging and educational. Keep responses "
    "concise but thorough. If files are attached, analyze them and provide relevant help."
)

LOCAL_TUTOR_TEMPLATE = """You are a helpful AI tutor for students. Give concise, clear homework help.

{task}

Question: {question}

Answer:"""

EMPTY_COMPLETION = "I apologize, but I could not generate a response."


@dataclass(frozen=True)
class ProviderSuccess:
    text: str
    model: str
    source: ProviderSource


@dataclass(frozen=True)
class ProviderUnavailable:
    provider: str
    reason: str


ProviderResult = Union[ProviderSuccess, ProviderUnavailable]


class ChatProvider(ABC):
    """A service that can answer a homework question.

    Implementations never raise: any failure comes back as ProviderUnavailable
    so the chat service can move on to the next provider.
    """

    name: str

    @abstractmethod
    async def generate(self, chat_request: ChatRequest) -> ProviderResult:
        ...


class OpenAIProvider(ChatProvider):
    """Hosted chat-completion provider, skipped when no API key is set"""

    name = "openai"

    def __init__(self, api_key: Optional[str], default_model: str = "gpt-4o-mini",
                 premium_model: str = "gpt-4o", max_tokens: int = 800,
                 premium_max_tokens: int = 1200, temperature: float = 0.7,
                 timeout: float = 30.0, file_service: Optional[FileService] = None):
        self.api_key = api_key
        self.default_model = default_model
        self.premium_model = premium_model
        self.max_tokens = max_tokens
        self.premium_max_tokens = premium_max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.file_service = file_service or FileService()
        self.logger = logging.getLogger(__name__)

        self.prompt = ChatPromptTemplate.from_messages([
            ("system", TUTOR_SYSTEM_PROMPT),
            ("human", "{user_content}"),
        ])

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def max_tokens_for(self, model: str) -> int:
        return self.premium_max_tokens if model == self.premium_model else self.max_tokens

    def build_user_content(self, chat_request: ChatRequest) -> str:
        context_part = ""
        if chat_request.context:
            context_part = f'Context: I\'m working on "{chat_request.context}"\n\n'

        attachment_context = self.file_service.render_attachment_context(chat_request.attachments)
        return f"{context_part}{chat_request.message}{attachment_context}"

    def create_llm(self, model: str) -> ChatOpenAI:
        return ChatOpenAI(
            model=model,
            api_key=self.api_key,
            temperature=self.temperature,
            max_tokens=self.max_tokens_for(model),
            timeout=self.timeout,
            max_retries=0,
        )

    async def generate(self, chat_request: ChatRequest) -> ProviderResult:
        if not self.is_configured:
            return ProviderUnavailable(self.name, "OPENAI_API_KEY not configured")

        model = chat_request.model or self.default_model
        try:
            chain = self.prompt | self.create_llm(model) | StrOutputParser()
            text = await asyncio.wait_for(
                chain.ainvoke({"user_content": self.build_user_content(chat_request)}),
                timeout=self.timeout,
            )
        except Exception as e:
            self.logger.warning("OpenAI request failed (%s): %s", type(e).__name__, e)
            return ProviderUnavailable(self.name, str(e) or type(e).__name__)

        if not text or not text.strip():
            text = EMPTY_COMPLETION

        return ProviderSuccess(text=text, model=model, source=ProviderSource.PRIMARY)


class OllamaProvider(ChatProvider):
    """Local Ollama server reached over its /api/generate endpoint"""

    name = "ollama"

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "llama3.2:1b",
                 timeout: float = 10.0, temperature: float = 0.5, top_p: float = 0.8,
                 max_tokens: int = 500, client: Optional[httpx.AsyncClient] = None):
        self.endpoint = f"{base_url.rstrip('/')}/api/generate"
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self._client = client
        self.logger = logging.getLogger(__name__)

        self.prompt = PromptTemplate(
            input_variables=["task", "question"],
            template=LOCAL_TUTOR_TEMPLATE,
        )

    def build_payload(self, chat_request: ChatRequest) -> Dict[str, Any]:
        task = f"Task: {chat_request.context}" if chat_request.context else ""
        return {
            "model": self.model,
            "prompt": self.prompt.format(task=task, question=chat_request.message),
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "top_p": self.top_p,
                "max_tokens": self.max_tokens,
            },
        }

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.endpoint, json=payload, timeout=self.timeout)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload)

    async def generate(self, chat_request: ChatRequest) -> ProviderResult:
        payload = self.build_payload(chat_request)
        try:
            # wait_for cancels the request once the deadline passes, whatever the transport does
            response = await asyncio.wait_for(self._post(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Ollama did not answer within %.1fs", self.timeout)
            return ProviderUnavailable(self.name, f"timed out after {self.timeout}s")
        except Exception as e:
            self.logger.warning("Ollama request failed (%s): %s", type(e).__name__, e)
            return ProviderUnavailable(self.name, str(e) or type(e).__name__)

        if not response.is_success:
            self.logger.warning("Ollama API error: %s", response.status_code)
            return ProviderUnavailable(self.name, f"Ollama API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            self.logger.warning("Ollama returned invalid JSON: %s", e)
            return ProviderUnavailable(self.name, "invalid JSON body")

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            return ProviderUnavailable(self.name, "response field missing or empty")

        return ProviderSuccess(text=text, model=self.model, source=ProviderSource.SECONDARY)


def build_providers(settings: Settings) -> List[ChatProvider]:
    """Providers in the order they are tried"""
    return [
        OpenAIProvider(
            api_key=settings.OPENAI_API_KEY,
            default_model=settings.DEFAULT_MODEL,
            premium_model=settings.PREMIUM_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            premium_max_tokens=settings.OPENAI_PREMIUM_MAX_TOKENS,
            temperature=settings.OPENAI_TEMPERATURE,
            timeout=settings.OPENAI_TIMEOUT,
        ),
        OllamaProvider(
            base_url=settings.OLLAMA_BASE_URL,
            model=settings.OLLAMA_MODEL,
            timeout=settings.OLLAMA_TIMEOUT,
            temperature=settings.OLLAMA_TEMPERATURE,
            top_p=settings.OLLAMA_TOP_P,
            max_tokens=settings.OLLAMA_MAX_TOKENS,
        ),
    ]
