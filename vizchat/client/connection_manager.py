"""
Connection management for the model endpoint.

Handles reachability checks and model discovery over one pooled
requests.Session. The SSE proxy transport has no discovery endpoint, so only
reachability is checked for it.
"""

import logging
from typing import List, Optional

import requests
from rich.console import Console
from rich.markup import escape

from .config import ChatConfig

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages HTTP connections to the model server."""

    def __init__(self, config: ChatConfig, session: Optional[requests.Session] = None,
                 console: Optional[Console] = None):
        self.config = config
        self.session = session or requests.Session()
        self.console = console or Console()

    def test_connection(self) -> bool:
        """Check the server is reachable.

        OpenAI-compatible servers: /health first, then /v1/models for servers
        without a health endpoint. SSE proxies: any non-5xx answer on the chat
        path counts (a GET usually returns 405).
        """
        base_url = self.config.base_url
        try:
            if self.config.transport == "sse":
                response = self.session.get(f"{base_url}{self.config.chat_path}", timeout=10)
                if response.status_code < 500:
                    self.console.print(f"[green]✓[/green] Reached chat proxy at {base_url}")
                    return True
                self.console.print(f"[yellow]⚠[/yellow] Proxy responded with status {response.status_code}")
                return False

            response = self.session.get(f"{base_url}/health", timeout=10)
            if response.status_code == 200:
                self.console.print(f"[green]✓[/green] Connected to server at {base_url}")
                return True
            elif response.status_code == 503:
                self.console.print(f"[yellow]⚠[/yellow] Server is starting up at {base_url} (status 503)")
                return True
            elif response.status_code == 404:
                models_response = self.session.get(f"{base_url}/v1/models", timeout=10)
                if models_response.status_code == 200:
                    self.console.print(f"[green]✓[/green] Connected to OpenAI-compatible server at {base_url}")
                    return True
                self.console.print(f"[yellow]⚠[/yellow] Server responded with status {models_response.status_code}")
                return False
            else:
                self.console.print(f"[yellow]⚠[/yellow] Server responded with status {response.status_code}")
                return False

        except requests.exceptions.RequestException as e:
            logger.debug("Connection test failed: %s", e)
            self.console.print(f"[red]❌[/red] Cannot connect to server: {escape(str(e))}")
            self.console.print(f"Make sure the server is running at {base_url}")
            return False

    def get_available_models(self) -> List[str]:
        """Model ids from the OpenAI-compatible /v1/models endpoint, or [] on any failure."""
        if self.config.transport == "sse":
            return []
        try:
            response = self.session.get(f"{self.config.base_url}/v1/models", timeout=10)
            if response.status_code == 200:
                return [model['id'] for model in response.json().get('data', [])]
            self.console.print(f"[yellow]⚠[/yellow] Could not fetch models: HTTP {response.status_code}")
            return []
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            self.console.print(f"[yellow]⚠[/yellow] Could not fetch models: {escape(str(e))}")
            return []
