"""Conversation data models."""

import time
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import MessageFinalizedError


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class Attachment(BaseModel):
    """A file attached to a user message. Immutable once attached."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(..., description="MIME type of the file")
    file_name: Optional[str] = Field(default=None, description="Original file name")
    data: Optional[str] = Field(default=None, description="Base64 payload or data URL")
    url: Optional[str] = Field(default=None, description="External location of the file")
    extracted_text: Optional[str] = Field(
        default=None,
        description="Pre-extracted text used as model context"
    )

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")

    @property
    def is_document(self) -> bool:
        return not (self.is_image or self.is_pdf or self.is_video)


class GroundingSource(BaseModel):
    """A citation emitted by the backend alongside streamed text."""

    model_config = ConfigDict(frozen=True)

    title: str = "Source"
    uri: str


class Message(BaseModel):
    """One conversational turn.

    A model message's content grows while its response streams in and is
    frozen by finalize() once the stream ends.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Role
    content: str = ""
    timestamp: float = Field(default_factory=time.time)
    attachments: List[Attachment] = Field(default_factory=list)
    grounding_sources: List[GroundingSource] = Field(default_factory=list)
    is_final: bool = False

    def set_content(self, content: str) -> None:
        if self.is_final:
            raise MessageFinalizedError(f"Message {self.id} is final")
        self.content = content

    def finalize(self, sources: Optional[List[GroundingSource]] = None) -> None:
        if sources is not None:
            self.grounding_sources = list(sources)
        self.is_final = True


class ChatSession(BaseModel):
    """A conversation: ordered messages plus the last document context."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = "New Chat"
    messages: List[Message] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)
    last_active_doc: Optional[Attachment] = None

    def add(self, message: Message) -> Message:
        self.messages.append(message)
        if message.role == Role.USER:
            for attachment in message.attachments:
                if attachment.extracted_text or attachment.is_video:
                    self.last_active_doc = attachment
        return message

    def last_model_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == Role.MODEL:
                return message
        return None
