"""Terminal chat client: configuration, transports, live rendering and the REPL."""

from .chat_client import ChatClient
from .chat_engine import ChatEngine, StreamEvent, iter_openai_events, iter_sse_events
from .config import ChatConfig, load_yaml_config, setup_logging

__all__ = [
    'ChatClient',
    'ChatConfig',
    'ChatEngine',
    'StreamEvent',
    'iter_openai_events',
    'iter_sse_events',
    'load_yaml_config',
    'setup_logging',
]
