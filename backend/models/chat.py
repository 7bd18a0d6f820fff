from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any

class ProviderSource(str, Enum):
    """Where a chat answer came from, as reported in the ``source`` field"""
    PRIMARY = "openai"
    SECONDARY = "ollama"
    FALLBACK = "built-in"

class Attachment(BaseModel):
    name: str
    type: str = "application/octet-stream"
    size: Optional[int] = None
    content: Optional[str] = None  # Only text attachments carry inline content

    @property
    def is_text(self) -> bool:
        return self.type.startswith("text/")

class ChatRequest(BaseModel):
    message: str = ""
    context: Optional[str] = None
    model: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("message", mode="before")
    @classmethod
    def missing_message_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("attachments", mode="before")
    @classmethod
    def non_list_attachments_are_ignored(cls, value):
        return value if isinstance(value, list) else []

class ChatResponse(BaseModel):
    response: str
    model: str
    source: ProviderSource
    note: Optional[str] = None

class ErrorResponse(BaseModel):
    error: str

class ModelsResponse(BaseModel):
    models: List[str]
    default: str

class ActivityEntryResponse(BaseModel):
    id: str
    user_id: str
    user_email: str
    user_name: str
    action: str
    details: Dict[str, Any]
    timestamp: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
