"""
Conversation history.

Wraps one ChatSession. Only the last CONTEXT_WINDOW non-empty, non-system
messages are sent back to the model as context.
"""

import logging
from typing import Dict, List, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from ..models import Attachment, ChatSession, Message, Role
from .config import ChatConfig

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 10

API_ROLES = {Role.USER: "user", Role.MODEL: "assistant", Role.SYSTEM: "system"}


class HistoryManager:
    """Manages conversation history for one chat session."""

    def __init__(self, config: ChatConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()
        self.session = ChatSession()

    def add_message(self, role: Role, content: str,
                    attachments: Optional[List[Attachment]] = None) -> Message:
        message = Message(role=role, content=content, attachments=attachments or [])
        if role != Role.MODEL:
            message.finalize()
        return self.session.add(message)

    def add(self, message: Message) -> Message:
        return self.session.add(message)

    def get_history(self) -> List[Message]:
        return list(self.session.messages)

    def context_messages(self, limit: int = CONTEXT_WINDOW) -> List[Dict[str, str]]:
        """OpenAI-style message dicts for the recent conversation."""
        usable = [
            m for m in self.session.messages
            if m.role != Role.SYSTEM and m.content.strip()
        ]
        return [{"role": API_ROLES[m.role], "content": m.content} for m in usable[-limit:]]

    def last_model_message(self) -> Optional[Message]:
        return self.session.last_model_message()

    def remember_video_summary(self, attachment: Attachment, summary: str) -> None:
        """Keep the model's description of a video as context for follow-up turns."""
        if attachment.is_video and summary:
            self.session.last_active_doc = attachment.model_copy(update={"extracted_text": summary})

    def clear_history(self) -> None:
        self.session = ChatSession()
        self.console.print("[green]✓ Conversation history cleared[/green]")

    def show_history(self) -> None:
        if not self.session.messages:
            self.console.print("[dim]No messages yet[/dim]")
            return
        for message in self.session.messages:
            if message.role == Role.USER:
                self.console.print(Panel(Text(message.content), title="[bold cyan]You[/bold cyan]",
                                         border_style="cyan"))
            elif message.role == Role.MODEL:
                self.console.print(Panel(Markdown(message.content), title="[bold blue]🤖 Assistant[/bold blue]",
                                         border_style="blue"))
