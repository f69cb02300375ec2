"""
Main chat client that orchestrates all components.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console

from ..errors import VizchatError
from ..models import Message
from ..render import RenderContext, SegmentRenderer, Theme
from ..render.bio import RcsbStructureClient
from ..render.constellation import SkyView
from ..streaming import StructuredBlock, VizKind, scan
from .chat_engine import ChatEngine, StreamEvent
from .config import ChatConfig
from .connection_manager import ConnectionManager
from .context import ContextBuilder
from .history_manager import HistoryManager
from .response_handler import ResponseHandler
from .speech import FileAudioPlayer, NullAudioPlayer, SpeechService
from .ui_manager import UIManager

logger = logging.getLogger(__name__)

# Characters per simulated chunk when rendering a saved transcript
TRANSCRIPT_CHUNK = 48


def transcript_events(text: str, chunk_size: int = TRANSCRIPT_CHUNK) -> Iterator[StreamEvent]:
    for start in range(0, len(text), chunk_size):
        yield StreamEvent(text=text[start:start + chunk_size])


class ChatClient:
    """Terminal chat client with inline visualizations."""

    def __init__(self, config: ChatConfig, console: Optional[Console] = None, check_connection: bool = True):
        self.config = config
        self.console = console or Console()

        audio_player = FileAudioPlayer(config.speech_output) if config.speech_output else NullAudioPlayer()
        self.render_context = RenderContext(
            theme=Theme.from_name(config.theme),
            language=config.language,
            audio_player=audio_player,
            structure_client=RcsbStructureClient(),
            observer_location=config.observer_location,
            physics_steps=config.physics_steps,
            width=self.console.width,
        )
        self.sky_view = SkyView(location=config.observer_location)
        self.renderer = SegmentRenderer(
            self.render_context,
            renderer_options={VizKind.CONSTELLATION: {"view": self.sky_view}},
        )

        # Initialize components
        self.connection_manager = ConnectionManager(config, console=self.console)
        self.history_manager = HistoryManager(config, self.console)
        self.response_handler = ResponseHandler(config, self.renderer, self.console)
        self.ui_manager = UIManager(config, self.console)
        self.context_builder = ContextBuilder(config) if config.context_endpoint else None
        self.chat_engine = ChatEngine(config, self.history_manager, self.response_handler, self.context_builder)
        self.speech = SpeechService(config, self.chat_engine.openai_client)

        if check_connection and not self.connection_manager.test_connection():
            raise ConnectionError("Failed to connect to model server")

    def chat(self, message: str) -> Message:
        """Send a chat message and render the response."""
        return self.chat_engine.chat(message)

    def clear_history(self) -> None:
        self.history_manager.clear_history()

    def show_history(self) -> None:
        self.history_manager.show_history()

    def get_available_models(self) -> List[str]:
        return self.connection_manager.get_available_models()

    def set_model(self, model: str):
        self.config.model = model

    # ------------------------------------------------------------------------
    # Commands working on the last answer
    # ------------------------------------------------------------------------

    def last_block(self, kind: VizKind) -> Optional[StructuredBlock]:
        message = self.history_manager.last_model_message()
        if message is None:
            return None
        blocks = [s for s in scan(message.content).segments
                  if isinstance(s, StructuredBlock) and s.kind == kind]
        return blocks[-1] if blocks else None

    def show_sources(self) -> None:
        message = self.history_manager.last_model_message()
        if message is None or not message.grounding_sources:
            self.ui_manager.show_info("No sources for the last answer")
            return
        self.response_handler.show_sources(message.grounding_sources)

    def speak(self) -> None:
        message = self.history_manager.last_model_message()
        if message is None:
            raise VizchatError("No answer to read aloud yet")
        if isinstance(self.render_context.audio_player, NullAudioPlayer):
            raise VizchatError("No speech output configured (use --speech-output FILE.wav)")
        audio = self.speech.synthesize(message.content)
        self.render_context.audio_player.play(audio)
        self.ui_manager.show_success(f"Speech written to {self.config.speech_output}")

    def sky(self, args: List[str]) -> None:
        """Adjust the shared SkyView and redraw the last star map."""
        block = self.last_block(VizKind.CONSTELLATION)
        if block is None:
            raise VizchatError("No star map in the last answer")

        action = args[0].lower() if args else ""
        try:
            if action == "zoom-in":
                self.sky_view.zoom_in()
            elif action == "zoom-out":
                self.sky_view.zoom_out()
            elif action == "pan" and len(args) == 3:
                self.sky_view.pan(float(args[1]), float(args[2]))
            elif action == "time" and len(args) == 2:
                self.sky_view.advance(float(args[1]))
            elif action == "reset":
                self.sky_view.reset()
            elif action:
                raise VizchatError(f"Unknown sky action: {' '.join(args)}")
        except ValueError as e:
            raise VizchatError(f"Invalid number in sky command: {e}") from e
        self.console.print(self.renderer.render(block))

    def replay(self, seconds: float = 5.0) -> None:
        block = self.last_block(VizKind.PHYSICS)
        if block is None:
            raise VizchatError("No physics simulation in the last answer")
        self.renderer.renderer_for(VizKind.PHYSICS).animate(self.console, block.payload, seconds=seconds)

    def render_transcript(self, path: str) -> Message:
        """Replay a saved answer through the streaming pipeline."""
        file = Path(path)
        if not file.exists():
            raise VizchatError(f"Transcript not found: {path}")
        text = file.read_text(encoding='utf-8')
        logger.debug("Rendering transcript %s (%d chars)", path, len(text))
        message = self.response_handler.handle_stream(transcript_events(text), title=file.name)
        self.history_manager.add(message)
        return message
