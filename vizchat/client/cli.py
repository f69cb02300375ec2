"""
CLI interface for the chat client.

A REPL around ChatClient: plain input is sent to the model, input starting
with "/" is a command. `--render FILE` renders a saved transcript and exits
without contacting a server.
"""

import argparse
import shlex
import sys
from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.styles import Style

from ..errors import ConfigError, VizchatError
from .chat_client import ChatClient
from .config import LANGUAGES, THEMES, TRANSPORTS, ChatConfig, setup_logging


def create_prompt_session() -> PromptSession:
    """Prompt with in-memory history (↑/↓) and a styled prefix."""
    style = Style.from_dict({
        'prompt': 'bold cyan',
    })
    return PromptSession(
        history=InMemoryHistory(),
        style=style,
        message="You: "
    )


def build_parser() -> argparse.ArgumentParser:
    # Defaults are None so values from --config are only overridden by
    # flags that were actually given; ChatConfig holds the real defaults.
    parser = argparse.ArgumentParser(
        description="Terminal chat client that renders charts, molecules, simulations and star maps inline",
    )
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('--base-url', dest='base_url', help='Server base URL (default http://localhost:8000)')
    parser.add_argument('--model', help='Model name (auto-detected from the server when omitted)')
    parser.add_argument('--fallback-models', dest='fallback_models',
                        help='Comma-separated models to try when a stream fails')
    parser.add_argument('--transport', choices=TRANSPORTS, help='openai (default) or sse proxy')
    parser.add_argument('--chat-path', dest='chat_path', help='Chat endpoint path for the sse transport')
    parser.add_argument('--api-key', dest='api_key', help='API key sent to the server')
    parser.add_argument('--temperature', type=float, help='Sampling temperature')
    parser.add_argument('--max-tokens', dest='max_tokens', type=int, help='Maximum tokens to generate')
    parser.add_argument('--stream', action=argparse.BooleanOptionalAction, default=None,
                        help='Stream responses (default on)')
    parser.add_argument('--language', choices=LANGUAGES, help='Answer and label language')
    parser.add_argument('--theme', choices=THEMES, help='Terminal background')
    parser.add_argument('--observer-lat', dest='observer_lat', type=float, help='Star map latitude')
    parser.add_argument('--observer-lon', dest='observer_lon', type=float, help='Star map longitude')
    parser.add_argument('--physics-steps', dest='physics_steps', type=int,
                        help='Simulation steps before a physics frame is drawn')
    parser.add_argument('--speech-output', dest='speech_output', help='WAV file written by /speak')
    parser.add_argument('--context-endpoint', dest='context_endpoint',
                        help='Base URL of the URL/transcript extraction service')
    parser.add_argument('--render', metavar='FILE', help='Render a saved transcript and exit')
    parser.add_argument('--debug', action='store_true', default=None,
                        help='Log prompts and responses to vizchat_debug.log')
    return parser


def handle_command(client: ChatClient, user_input: str) -> bool:
    """Run one slash command. Returns False when the REPL should stop."""
    try:
        parts = shlex.split(user_input[1:])
    except ValueError:
        parts = user_input[1:].split()
    if not parts:
        client.ui_manager.show_error(f"Unknown command: {user_input}")
        return True
    cmd, args = parts[0].lower(), parts[1:]

    if cmd in ['quit', 'exit', 'q']:
        client.console.print("[yellow]👋 Goodbye![/yellow]")
        return False
    elif cmd == 'help':
        client.ui_manager.show_help()
    elif cmd == 'clear':
        client.clear_history()
    elif cmd == 'history':
        client.show_history()
    elif cmd == 'sources':
        client.show_sources()
    elif cmd == 'speak':
        client.speak()
    elif cmd == 'sky':
        client.sky(args)
    elif cmd == 'replay':
        try:
            seconds = float(args[0]) if args else 5.0
        except ValueError:
            raise VizchatError(f"Not a number of seconds: {args[0]}") from None
        client.replay(seconds)
    elif cmd == 'render':
        if not args:
            raise VizchatError("Usage: /render FILE")
        client.render_transcript(args[0])
    else:
        client.ui_manager.show_error(f"Unknown command: {user_input}")
    return True


def run_repl(client: ChatClient, session: PromptSession) -> None:
    while True:
        try:
            user_input = session.prompt().strip()
            if not user_input:
                continue

            if user_input.startswith('/'):
                if not handle_command(client, user_input):
                    break
                continue

            client.chat(user_input)

        except VizchatError as e:
            client.ui_manager.show_error(str(e))
        except KeyboardInterrupt:
            client.console.print("\n[yellow]👋 Goodbye![/yellow]")
            break
        except EOFError:
            break


def main(argv: Optional[List[str]] = None):
    """Entry point. Exit code 1 on configuration or connection failure."""
    args = build_parser().parse_args(argv)

    try:
        config = ChatConfig.from_args(args)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(config)

    if args.render:
        client = ChatClient(config, check_connection=False)
        try:
            client.render_transcript(args.render)
        except VizchatError as e:
            client.ui_manager.show_error(str(e))
            sys.exit(1)
        return

    try:
        client = ChatClient(config)
    except ConnectionError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not client.config.model and config.transport == "openai":
        models = client.get_available_models()
        if not models:
            client.ui_manager.show_error("No models available on server")
            sys.exit(1)
        client.set_model(models[0])
        client.ui_manager.show_success(f"Auto-selected model: {client.config.model}")

    client.ui_manager.show_welcome(client.config.model)
    run_repl(client, create_prompt_session())


if __name__ == "__main__":
    main()
