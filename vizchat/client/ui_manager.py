"""
UI management for displaying messages and status.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import ChatConfig

COMMANDS = (
    ("/help", "Show this help message"),
    ("/clear", "Clear conversation history"),
    ("/history", "Show conversation history"),
    ("/sources", "List the sources of the last answer"),
    ("/speak", "Read the last answer aloud"),
    ("/sky zoom-in|zoom-out|pan DX DY|time HOURS|reset", "Adjust and redraw the last star map"),
    ("/replay [SECONDS]", "Animate the last physics simulation"),
    ("/render FILE", "Render a saved transcript without a server"),
    ("/quit", "Exit the chat"),
)


class UIManager:
    """Manages user interface elements."""

    def __init__(self, config: ChatConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()

    def show_welcome(self, model: Optional[str]):
        """Show welcome message with rich formatting."""
        welcome_text = Text()
        welcome_text.append("🤖 vizchat", style="bold blue")
        welcome_text.append(" (inline visualizations)", style="bold green")
        welcome_text.append("\n\n")
        welcome_text.append("Configuration:\n", style="bold")
        welcome_text.append(f"• Server: {self.config.base_url} ({self.config.transport})\n")
        welcome_text.append(f"• Model: {model or 'server default'}\n")
        if self.config.fallback_models:
            welcome_text.append(f"• Fallback: {', '.join(self.config.fallback_models)}\n")
        welcome_text.append(f"• Language: {self.config.language}\n")
        welcome_text.append(f"• Temperature: {self.config.temperature}\n")
        welcome_text.append(f"• Streaming: {'Enabled' if self.config.stream else 'Disabled'}\n")

        welcome_text.append("\nCommands: " + ", ".join(cmd.split()[0] for cmd, _ in COMMANDS) + "\n", style="dim")
        welcome_text.append("Type your message and press Enter to chat!", style="italic")

        self.console.print(Panel(welcome_text, title=":rocket: Welcome", border_style="blue"))

    def show_help(self):
        """Show help message."""
        help_table = Table(title="Available Commands")
        help_table.add_column("Command", style="cyan", no_wrap=True)
        help_table.add_column("Description", style="white")
        for command, description in COMMANDS:
            help_table.add_row(escape(command), description)
        self.console.print(help_table)

    def show_error(self, message: str):
        """Show error message."""
        self.console.print(f"[red]❌ {escape(message)}[/red]")

    def show_success(self, message: str):
        """Show success message."""
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def show_info(self, message: str):
        self.console.print(f"[dim]{escape(message)}[/dim]")
