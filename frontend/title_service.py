from typing import Optional, Sequence
import re

DEFAULT_TITLE = "New Chat"
MAX_TITLE_LENGTH = 40

def generate_title(message: Optional[str], attachment_names: Sequence[str] = ()) -> str:
    """Derive a conversation title from the first user message.

    Whitespace is collapsed and titles longer than 40 characters are cut with
    an ellipsis. Attachment-only messages are named after the first file.
    """
    text = " ".join((message or "").split())
    if not text and attachment_names:
        text = " ".join(str(attachment_names[0]).split())

    if not text:
        return DEFAULT_TITLE

    # Markdown emphasis reads badly in the sidebar
    text = re.sub(r"[*`]+", "", text).lstrip("# ").strip() or DEFAULT_TITLE

    if len(text) > MAX_TITLE_LENGTH:
        text = text[:MAX_TITLE_LENGTH - 3].rstrip() + "..."

    return text
