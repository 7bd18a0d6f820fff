import mimetypes
from typing import List, Optional

from starlette.datastructures import UploadFile

from ..models.chat import Attachment

class FileService:
    """Turns uploaded chat attachments into descriptors for the prompt.

    Nothing is written to disk: multipart parts are read once to learn their
    size, and text parts are decoded so a short preview can be sent upstream.
    """

    TEXT_PREVIEW_CHARS = 1000
    DEFAULT_MIME_TYPE = "application/octet-stream"

    def detect_mime_type(self, filename: Optional[str], content_type: Optional[str]) -> str:
        """Prefer the declared content type, fall back to the file extension"""
        if content_type and content_type != self.DEFAULT_MIME_TYPE:
            return content_type

        if filename:
            detected_mime_type, _ = mimetypes.guess_type(filename)
            if detected_mime_type:
                return detected_mime_type

        return content_type or self.DEFAULT_MIME_TYPE

    async def describe_upload(self, upload: UploadFile, field_name: str) -> Attachment:
        """Build an attachment descriptor from a multipart file part"""
        content = await upload.read()
        mime_type = self.detect_mime_type(upload.filename, upload.content_type)

        text_content = None
        if mime_type.startswith("text/"):
            text_content = content.decode("utf-8", errors="replace")

        return Attachment(
            name=upload.filename or field_name,
            type=mime_type,
            size=len(content),
            content=text_content,
        )

    def render_attachment_context(self, attachments: List[Attachment]) -> str:
        """Summarise attachments for the tutor prompt"""
        if not attachments:
            return ""

        lines = ["", "", "Attached files:"]
        for attachment in attachments:
            lines.append(f"- {attachment.name} ({attachment.type})")
            if attachment.content and attachment.is_text:
                lines.append(f"Content: {attachment.content[:self.TEXT_PREVIEW_CHARS]}...")

        return "\n".join(lines) + "\n"
