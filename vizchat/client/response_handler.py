"""
Live display of a streaming response.

Every event rescans the whole buffer and redraws the message from the new
segment list, so a skipped or coalesced refresh is corrected by the next
one. Only the in-flight message lives inside the Live region; finished
messages are printed once and never redrawn.
"""

import logging
from typing import Dict, Iterator, List, Optional

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from ..errors import StreamTransportError
from ..models import GroundingSource, Message, Role
from ..render import SegmentRenderer
from ..streaming import MemoizedScanner, Segment, StructuredBlock, TokenAccumulator
from .config import ChatConfig, truncate

logger = logging.getLogger(__name__)


class ResponseHandler:
    """Renders one response at a time while it streams in."""

    def __init__(self, config: ChatConfig, renderer: SegmentRenderer, console: Optional[Console] = None):
        self.config = config
        self.renderer = renderer
        self.console = console or Console()
        # Finished blocks keyed by their source text; reset per response
        self._block_cache: Dict[str, RenderableType] = {}

    def render_segments(self, segments: List[Segment]) -> List[RenderableType]:
        renderables = []
        for segment in segments:
            if isinstance(segment, StructuredBlock):
                if segment.raw not in self._block_cache:
                    self._block_cache[segment.raw] = self.renderer.render(segment)
                renderables.append(self._block_cache[segment.raw])
            else:
                renderables.append(self.renderer.render(segment))
        return renderables

    def frame(self, segments: List[Segment], title: Optional[str] = None,
              status: Optional[Text] = None) -> Panel:
        body: List[RenderableType] = self.render_segments(segments)
        if status is not None:
            body.append(status)
        label = "🤖 Assistant" + (f" · {title}" if title else "")
        return Panel(Group(*body), title=Text(label, style="bold blue"), title_align="left",
                     border_style="blue")

    def handle_stream(self, events: Iterator, title: Optional[str] = None) -> Message:
        """Consume stream events into a new model message and display it live.

        Ctrl+C cancels the response and closes the stream; transport errors
        leave the partial content visible with a status line. Either way the
        message is finalised and returned.
        """
        message = Message(role=Role.MODEL)
        accumulator = TokenAccumulator(message)
        scanner = MemoizedScanner()
        self._block_cache = {}
        status: Optional[Text] = None

        with Live(self.frame([], title, Text("…", style="dim")), console=self.console,
                  refresh_per_second=10, vertical_overflow="visible") as live:
            try:
                for event in events:
                    if event.text or event.reset:
                        accumulator.feed(event.text, reset=event.reset)
                    if event.sources:
                        accumulator.add_sources(event.sources)
                    live.update(self.frame(scanner.scan(accumulator.buffer).segments, title))
            except KeyboardInterrupt:
                accumulator.cancel()
                close = getattr(events, "close", None)
                if close is not None:
                    close()
                status = Text("⏹ Response cancelled", style="yellow")
            except StreamTransportError as e:
                logger.error("Stream failed: %s", e)
                status = Text(f"⚠ {e}", style="red")

            live.update(self.frame(scanner.scan(accumulator.buffer).segments, title, status))

        accumulator.finish()
        logger.debug("Response: %s", truncate(message.content))
        if message.grounding_sources:
            self.show_sources(message.grounding_sources)
        return message

    def display_message(self, message: Message, title: Optional[str] = None) -> None:
        """Print a finished message (no Live region)."""
        self._block_cache = {}
        scanner = MemoizedScanner()
        self.console.print(self.frame(scanner.scan(message.content).segments, title))
        if message.grounding_sources:
            self.show_sources(message.grounding_sources)

    def show_sources(self, sources: List[GroundingSource]) -> None:
        text = Text("Sources", style="bold")
        for index, source in enumerate(sources, 1):
            text.append(f"\n {index}. ")
            text.append(source.title, style=Style(link=source.uri))
            text.append(f"  {source.uri}", style="dim")
        self.console.print(text)
