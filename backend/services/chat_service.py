import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Request

from ..models.chat import ChatRequest, ChatResponse, ProviderSource
from .activity_service import (
    AI_CHAT_FALLBACK,
    AI_CHAT_REQUEST,
    AI_CHAT_RESPONSE,
    ActivityLog,
    UserIdentity,
)
from .fallback_service import FALLBACK_MODEL, FALLBACK_NOTE, generate_fallback_response
from .providers import ChatProvider, ProviderSuccess, ProviderUnavailable

MESSAGE_REQUIRED = "Message is required"


class ValidationError(Exception):
    """The chat request cannot be answered as sent"""


class ChatService:
    """Answers homework questions by trying each provider in order.

    The first provider that returns ProviderSuccess wins. When all of them are
    unavailable the built-in fallback text is returned, so a valid request
    always gets an answer.
    """

    def __init__(self, providers: Sequence[ChatProvider], activity_log: ActivityLog,
                 default_model: str = "gpt-4o-mini"):
        self.providers: List[ChatProvider] = list(providers)
        self.activity_log = activity_log
        self.default_model = default_model
        self.logger = logging.getLogger(__name__)

    def validate(self, chat_request: ChatRequest) -> None:
        if not chat_request.message and not chat_request.attachments:
            raise ValidationError(MESSAGE_REQUIRED)

    def _log_activity(self, user: Optional[UserIdentity], action: str,
                      details: Dict[str, Any], request: Optional[Request]) -> None:
        try:
            self.activity_log.log_user_activity(user, action, details, request)
        except Exception as e:
            self.logger.warning("Activity logging failed for %s: %s", action, e)

    async def _first_success(self, chat_request: ChatRequest) -> Optional[ProviderSuccess]:
        for provider in self.providers:
            try:
                result = await provider.generate(chat_request)
            except Exception as e:
                self.logger.error("Provider %s raised instead of reporting failure: %s",
                                  getattr(provider, "name", provider), e, exc_info=True)
                continue

            if isinstance(result, ProviderSuccess):
                return result

            if isinstance(result, ProviderUnavailable):
                self.logger.info("Provider %s unavailable: %s", result.provider, result.reason)
        return None

    async def handle(self, chat_request: ChatRequest, user: Optional[UserIdentity] = None,
                     request: Optional[Request] = None) -> ChatResponse:
        """Validate, log and answer a chat request"""
        self.validate(chat_request)

        if not chat_request.model:
            chat_request = chat_request.model_copy(update={"model": self.default_model})
        has_attachments = len(chat_request.attachments) > 0

        self._log_activity(user, AI_CHAT_REQUEST, {
            "messageLength": len(chat_request.message),
            "hasContext": bool(chat_request.context),
            "model": chat_request.model,
            "hasAttachments": has_attachments,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }, request)

        result = await self._first_success(chat_request)

        if result is not None:
            self._log_activity(user, AI_CHAT_RESPONSE, {
                "responseLength": len(result.text),
                "model": result.model,
                "success": True,
                "hasAttachments": has_attachments,
            }, request)
            return ChatResponse(response=result.text, model=result.model, source=result.source)

        self.logger.info("AI services not available, using fallback response")
        self._log_activity(user, AI_CHAT_FALLBACK, {
            "reason": "providers_unavailable",
            "messageLength": len(chat_request.message),
        }, request)

        return ChatResponse(
            response=generate_fallback_response(chat_request.message, chat_request.context),
            model=FALLBACK_MODEL,
            source=ProviderSource.FALLBACK,
            note=FALLBACK_NOTE,
        )
