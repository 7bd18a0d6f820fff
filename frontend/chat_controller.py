import base64
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .api_client import APIService, ChatAPIError
from .database.models import Conversation, Message
from .repositories.chat_repository import ChatRepository
from .title_service import DEFAULT_TITLE, generate_title
from .typewriter import Typewriter

MAX_ATTACHMENT_SIZE = 10 * 1024 * 1024  # 10MB limit

APOLOGY_MESSAGE = (
    "I apologize, but I'm having trouble responding right now. Please try asking your question "
    "again, or consider these study resources:\n\n"
    "• Khan Academy for math and science\n"
    "• Purdue OWL for writing help\n"
    "• Your textbook and class notes\n"
    "• Study groups with classmates"
)

WELCOME_MESSAGE = """Hi! I'm your AI homework assistant. I can help you with:

• **Math problems** - Step-by-step solutions
• **Essay writing** - Structure and tips
• **Science concepts** - Clear explanations
• **Study strategies** - Effective learning methods
• **Research help** - Finding reliable sources
• **File analysis** - Upload documents or text files"""


class ChatState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting-response"
    SUCCESS = "success"
    ERROR = "error"


class AttachmentTooLargeError(ValueError):
    pass


@dataclass
class StagedAttachment:
    """A file picked in the input area but not sent yet"""
    name: str
    type: str
    size: int
    content: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def metadata(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "size": self.size}

    def payload(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "content": self.content}


@dataclass
class PendingRequest:
    """A question on its way to the backend, addressed to the conversation it was asked in"""
    conversation_id: str
    message: str
    model: Optional[str]
    context: Optional[str]
    attachments: List[Dict[str, Any]]


def build_task_context(task: Optional[Dict[str, str]]) -> Optional[str]:
    """Describe the task the student is working on for the tutor"""
    if not task or not task.get("title"):
        return None

    context = f"Current task: {task['title']}"
    if task.get("category"):
        context += f" ({task['category']})"
    if task.get("description"):
        context += f" - {task['description']}"
    return context


def welcome_message(task: Optional[Dict[str, str]] = None) -> str:
    if task and task.get("title"):
        where = f" in {task['category']}" if task.get("category") else ""
        closing = f"I see you're working on \"{task['title']}\"{where}. How can I help with this task?"
    else:
        closing = "What homework can I help you with today?"
    return f"{WELCOME_MESSAGE}\n\n{closing}"


class ChatController:
    """Conversation state machine behind the chat panel.

    Per conversation: idle -> awaiting-response -> success | error -> idle.
    Only one request may be outstanding per conversation, and answers are
    always appended to the conversation the question was asked in, even if
    the user has switched to another one meanwhile.
    """

    def __init__(self, repository: ChatRepository, api: APIService,
                 typewriter: Optional[Typewriter] = None,
                 user_headers: Optional[Dict[str, str]] = None):
        self.repository = repository
        self.api = api
        self.typewriter = typewriter or Typewriter()
        self.user_headers = dict(user_headers or {})

        self.current_conversation_id: Optional[str] = None
        self.staged_attachments: List[StagedAttachment] = []
        self.states: Dict[str, ChatState] = {}
        self.outcomes: Dict[str, ChatState] = {}
        self.last_note: Optional[str] = None

        # Full text of assistant messages that are still being typed out
        self._pending_text: Dict[str, str] = {}
        self.logger = logging.getLogger(__name__)

    # State
    def state_of(self, conversation_id: Optional[str]) -> ChatState:
        if conversation_id is None:
            return ChatState.IDLE
        return self.states.get(conversation_id, ChatState.IDLE)

    def is_awaiting(self, conversation_id: Optional[str] = None) -> bool:
        target = conversation_id if conversation_id is not None else self.current_conversation_id
        return self.state_of(target) == ChatState.AWAITING_RESPONSE

    def can_submit(self, text: str) -> bool:
        has_input = bool(text and text.strip()) or bool(self.staged_attachments)
        return has_input and not self.is_awaiting()

    # Conversations
    def list_conversations(self) -> List[Conversation]:
        return self.repository.get_conversations()

    def messages(self, conversation_id: Optional[str] = None) -> List[Message]:
        target = conversation_id if conversation_id is not None else self.current_conversation_id
        if target is None:
            return []
        return self.repository.get_conversation_messages(target)

    def new_conversation(self) -> Conversation:
        """Start a fresh chat and make it the selected one"""
        self.stop_typing()
        conversation = self.repository.create_conversation(DEFAULT_TITLE)
        self.current_conversation_id = conversation.id
        self.staged_attachments = []
        self.last_note = None
        return conversation

    def select_conversation(self, conversation_id: str) -> bool:
        if self.repository.get_conversation(conversation_id) is None:
            return False
        if conversation_id != self.current_conversation_id:
            self.stop_typing()
            self.current_conversation_id = conversation_id
            self.last_note = None
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        if conversation_id == self.current_conversation_id:
            self.stop_typing()
            self.current_conversation_id = None
        self.states.pop(conversation_id, None)
        self.outcomes.pop(conversation_id, None)
        return self.repository.delete_conversation(conversation_id)

    # Attachments
    def stage_attachment(self, name: str, mime_type: str, data: bytes) -> StagedAttachment:
        if len(data) > MAX_ATTACHMENT_SIZE:
            raise AttachmentTooLargeError("File size must be less than 10MB")

        mime_type = mime_type or "application/octet-stream"
        content = None
        if mime_type.startswith("text/"):
            content = data.decode("utf-8", errors="replace")
        elif mime_type.startswith("image/"):
            content = f"data:{mime_type};base64,{base64.b64encode(data).decode()}"

        attachment = StagedAttachment(name=name, type=mime_type, size=len(data), content=content)
        self.staged_attachments.append(attachment)
        return attachment

    def remove_attachment(self, attachment_id: str) -> None:
        self.staged_attachments = [a for a in self.staged_attachments if a.id != attachment_id]

    # Request lifecycle
    def submit(self, text: str, model: Optional[str] = None,
               context: Optional[str] = None) -> Optional[PendingRequest]:
        """Append the user's message and mark the conversation as awaiting an answer.

        Returns None when there is nothing to send or the selected
        conversation is still waiting for its previous answer.
        """
        if not self.can_submit(text):
            return None

        message = (text or "").strip()
        attachments = list(self.staged_attachments)

        conversation = None
        if self.current_conversation_id is not None:
            conversation = self.repository.get_conversation(self.current_conversation_id)
        if conversation is None:
            conversation = self.repository.create_conversation(DEFAULT_TITLE)
            self.current_conversation_id = conversation.id

        if conversation.title == DEFAULT_TITLE and not any(
                m.role == "user" for m in self.repository.get_conversation_messages(conversation.id)):
            self.repository.update_conversation_title(
                conversation.id, generate_title(message, [a.name for a in attachments]))

        self.repository.add_message(
            conversation.id, "user", message,
            attachments=[a.metadata() for a in attachments],
        )

        self.staged_attachments = []
        self.last_note = None
        self.states[conversation.id] = ChatState.AWAITING_RESPONSE

        return PendingRequest(
            conversation_id=conversation.id,
            message=message,
            model=model,
            context=context,
            attachments=[a.payload() for a in attachments],
        )

    def resolve(self, pending: PendingRequest) -> Optional[Message]:
        """Ask the backend and append the answer to the conversation captured at submit time.

        Returns None if that conversation was deleted while waiting.
        """
        conversation_id = pending.conversation_id

        try:
            data = self.api.send_chat(
                pending.message,
                model=pending.model,
                context=pending.context,
                attachments=pending.attachments,
                headers=self.user_headers,
            )
        except ChatAPIError as e:
            self.logger.warning("Chat error: %s", e)
            data = None
        except Exception as e:
            self.logger.error("Unexpected chat error: %s", e, exc_info=True)
            data = None

        if self.repository.get_conversation(conversation_id) is None:
            self.states.pop(conversation_id, None)
            return None

        if data is None:
            return self._finish_with_error(conversation_id)

        message = self.repository.add_message(
            conversation_id, "assistant", "",
            model=data.get("model"), source=data.get("source"), is_final=False,
        )
        self._pending_text[message.id] = data["response"]

        if data.get("note") and conversation_id == self.current_conversation_id:
            self.last_note = data["note"]

        self.outcomes[conversation_id] = ChatState.SUCCESS
        self.states[conversation_id] = ChatState.IDLE
        return message

    def _finish_with_error(self, conversation_id: str) -> Message:
        message = self.repository.add_message(conversation_id, "assistant", APOLOGY_MESSAGE)
        self.outcomes[conversation_id] = ChatState.ERROR
        self.states[conversation_id] = ChatState.IDLE
        return message

    def send(self, text: str, model: Optional[str] = None,
             context: Optional[str] = None) -> Optional[Message]:
        """Submit and resolve in one step, finalising the answer without animation"""
        pending = self.submit(text, model=model, context=context)
        if pending is None:
            return None
        message = self.resolve(pending)
        if message is not None:
            self.finalize(message.id)
        return message

    # Typing simulation
    def has_pending_text(self, message_id: str) -> bool:
        return message_id in self._pending_text

    def finalize(self, message_id: str) -> Optional[Message]:
        """Store the full answer text and mark the message final"""
        text = self._pending_text.pop(message_id, None)
        if text is None:
            return self.repository.get_message(message_id)
        return self.repository.finalize_message(message_id, text)

    def finalize_all(self) -> None:
        for message_id in list(self._pending_text):
            self.finalize(message_id)

    def stop_typing(self) -> None:
        """Abandon any running animation; its message keeps its full text"""
        self.typewriter.cancel()
        self.finalize_all()

    def type_out(self, message: Message, render: Callable[[str], None]) -> bool:
        """Reveal an answer word by word.

        Stops early when another animation starts or the user leaves the
        conversation. The message is finalised with its full text either way.
        """
        text = self._pending_text.get(message.id)
        if text is None:
            render(message.content)
            return True

        conversation_id = message.conversation_id
        token = self.typewriter.new_token()

        def _render(revealed: str) -> None:
            message.content = revealed
            render(revealed)

        try:
            return self.typewriter.type_out(
                text, _render, token,
                still_visible=lambda: self.current_conversation_id == conversation_id,
            )
        finally:
            self.finalize(message.id)
