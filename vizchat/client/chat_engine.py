"""
Model streaming with transport normalisation and failover.

Two transports are supported:
- openai: the official client against any OpenAI-compatible server
  (chat.completions.create with stream=True)
- sse: raw HTTP server-sent events from a chat proxy, read with requests.
  Each line is `data: {...}` carrying one of {"text"}, {"reset": true},
  {"sources": [...]}, {"error"} or an OpenAI-style chunk; `data: [DONE]` ends
  the stream.

Both are normalised to StreamEvent objects. Attempts run once per configured
model; when one fails after text was already emitted, the next attempt's first
event carries reset=True so the partial answer is discarded downstream.
"""

import json
import logging
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import openai
import requests

from ..errors import StreamTransportError
from ..models import Attachment, GroundingSource, Message, Role
from .config import ChatConfig, truncate
from .context import ContextBuilder
from .history_manager import HistoryManager
from .response_handler import ResponseHandler

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"ko": "Korean", "en": "English", "es": "Spanish", "fr": "French"}

SYSTEM_PROMPT = """You are a professional AI assistant. Respond in {language}.

[CORE DIRECTIVE: SOURCE ADHERENCE]
- If PROVIDED_SOURCE_TEXT is present it holds the actual content of the URL or document the user is asking about.
- Prioritise PROVIDED_SOURCE_TEXT over general knowledge for that source and do not invent details absent from it.

[FORMATTING]
- Output only the final answer, never planning steps or draft headers.
- Keep all Markdown (tables, code blocks) complete and valid. Use $...$ and $$...$$ for math.

[VISUALIZATIONS]
When a visual helps, emit exactly one JSON object inside a fenced block tagged json:<kind>:
```json:chart
{{"type": "bar|line|area|pie|donut|treemap", "title": "...", "data": {{"categories": [...], "series": [{{"name": "...", "data": [...]}}]}}}}
```
- json:smiles   {{"smiles": "CCO", "name": "Ethanol"}}
- json:bio      {{"type": "sequence", "data": {{"sequence": "...", "highlights": [{{"start": 1, "end": 5, "label": "..."}}]}}}} or {{"type": "pdb", "data": {{"pdbId": "1CRN"}}}}
- json:physics  {{"title": "...", "objects": [{{"type": "circle|rect", "x": 400, "y": 100, "radius": 20, "velocity": {{"x": 2, "y": 0}}, "vectors": [...]}}]}} in an 800x400 world
- json:diagram  {{"type": "inclined_plane", "angle": 30, "forces": [{{"label": "mg", "magnitude": 1, "color": "#ef4444"}}]}}
- json:constellation {{"stars": [{{"id": 1, "ra": 5.9, "dec": 7.4, "mag": 0.5, "name": "Betelgeuse"}}], "constellations": [{{"id": "ori", "name": {{"en": "Orion"}}, "lines": [[1, 2]]}}]}}
- json:drug     {{"name": "...", "ingredient": "...", "category": "...", "dosage": "...", "efficacy": [{{"label": "..."}}]}}
The JSON must be valid and the block must be closed with ```."""


@dataclass
class StreamEvent:
    """One normalised stream update."""
    text: str = ""
    reset: bool = False
    sources: List[GroundingSource] = field(default_factory=list)


def parse_sources(raw: Any) -> List[GroundingSource]:
    sources = []
    for item in raw or []:
        if isinstance(item, dict) and item.get("uri"):
            sources.append(GroundingSource(title=item.get("title") or "Source", uri=item["uri"]))
    return sources


def iter_sse_events(lines: Iterable[Union[str, bytes]]) -> Iterator[StreamEvent]:
    """Decode `data:` lines from a chat proxy.

    Raises:
        StreamTransportError: on an {"error": ...} event
    """
    for line in lines:
        if not line:
            continue
        if isinstance(line, bytes):
            line = line.decode('utf-8', errors='replace')
        if not line.startswith('data:'):
            continue
        data = line[5:].strip()
        if data == '[DONE]':
            return

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable SSE line: %s", truncate(data, 100))
            continue
        if not isinstance(chunk, dict):
            continue

        if chunk.get('error'):
            raise StreamTransportError(str(chunk['error']))

        text = chunk.get('text') or ""
        choices = chunk.get('choices')
        if choices:
            text += (choices[0].get('delta') or {}).get('content') or ""
        event = StreamEvent(text=text, reset=bool(chunk.get('reset')), sources=parse_sources(chunk.get('sources')))
        if event.text or event.reset or event.sources:
            yield event


def iter_openai_events(stream: Iterable[Any]) -> Iterator[StreamEvent]:
    """Events from an OpenAI client stream of ChatCompletionChunk objects."""
    for chunk in stream:
        if chunk.choices and chunk.choices[0].delta.content:
            yield StreamEvent(text=chunk.choices[0].delta.content)


class ChatEngine:
    """Sends prompts and yields the normalised response stream."""

    def __init__(self, config: ChatConfig, history_manager: HistoryManager,
                 response_handler: ResponseHandler,
                 context_builder: Optional[ContextBuilder] = None,
                 openai_client: Optional[openai.OpenAI] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.history_manager = history_manager
        self.response_handler = response_handler
        self.context_builder = context_builder
        self.session = session or requests.Session()

        if openai_client is None and config.transport == "openai":
            openai_client = openai.OpenAI(
                base_url=f"{self.config.base_url}/v1",
                api_key=self.config.api_key,
                timeout=self.config.timeout,
            )
        self.openai_client = openai_client

    # ========================================================================
    # Public API
    # ========================================================================

    def chat(self, prompt: str, attachment: Optional[Attachment] = None) -> Message:
        """Send a prompt, render the streamed answer, and record both turns."""
        history = self.history_manager.context_messages()
        web_context = ""
        if self.context_builder is not None:
            web_context = self.context_builder.build(prompt, attachment, self.history_manager.session)

        self.history_manager.add_message(Role.USER, prompt, [attachment] if attachment else None)
        events = self.stream_events(prompt, history, web_context)
        reply = self.response_handler.handle_stream(events, title=self.config.model)
        self.history_manager.add(reply)
        if attachment is not None:
            self.history_manager.remember_video_summary(attachment, reply.content)
        return reply

    def build_messages(self, prompt: str, history: List[Dict[str, str]],
                       web_context: str = "") -> List[Dict[str, str]]:
        system = SYSTEM_PROMPT.format(language=LANGUAGE_NAMES.get(self.config.language, "English"))
        if web_context:
            system += f"\n\n[PROVIDED_SOURCE_TEXT]\n{web_context}"
        return [{"role": "system", "content": system}, *history, {"role": "user", "content": prompt}]

    def stream_events(self, prompt: str, history: List[Dict[str, str]],
                      web_context: str = "") -> Iterator[StreamEvent]:
        """Yield events for the first attempt that completes.

        Closing this generator closes the underlying HTTP response.

        Raises:
            StreamTransportError: when every attempt failed
        """
        messages = self.build_messages(prompt, history, web_context)
        logger.debug("=== PROMPT (%s) ===", self.config.transport)
        for msg in messages:
            logger.debug("%s: %s", msg['role'].upper(), truncate(msg['content']))

        models: List[Optional[str]] = list(self.config.models) or [None]
        last_error = "No attempts made"
        emitted = False

        for model in models:
            pending_reset = emitted
            try:
                with closing(self._attempt(model, prompt, history, web_context, messages)) as attempt:
                    for event in attempt:
                        if pending_reset:
                            event.reset = True
                            pending_reset = False
                        if event.text:
                            emitted = True
                        yield event
                return
            except (StreamTransportError, requests.exceptions.RequestException, openai.OpenAIError) as e:
                last_error = str(e)
                logger.warning("Attempt failed: model=%s, error=%s", model, last_error)

        raise StreamTransportError(f"All attempts failed. Last error: {last_error}")

    # ========================================================================
    # Transports
    # ========================================================================

    def _attempt(self, model: Optional[str], prompt: str, history: List[Dict[str, str]],
                 web_context: str, messages: List[Dict[str, str]]) -> Iterator[StreamEvent]:
        if self.config.transport == "sse":
            return self._sse_attempt(model, prompt, history, web_context)
        return self._openai_attempt(model, messages)

    def _openai_attempt(self, model: Optional[str], messages: List[Dict[str, str]]) -> Iterator[StreamEvent]:
        if not self.config.stream:
            response = self.openai_client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            content = response.choices[0].message.content or ""
            logger.debug("Response: %s", truncate(content))
            yield StreamEvent(text=content)
            return

        stream = self.openai_client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            stream=True,
        )
        try:
            yield from iter_openai_events(stream)
        finally:
            stream.close()

    def _sse_attempt(self, model: Optional[str], prompt: str, history: List[Dict[str, str]],
                     web_context: str) -> Iterator[StreamEvent]:
        payload: Dict[str, Any] = {
            "prompt": prompt,
            "history": history,
            "language": self.config.language,
            "webContent": web_context,
        }
        if model:
            payload["model"] = model

        response = self.session.post(
            f"{self.config.base_url}{self.config.chat_path}",
            json=payload,
            headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
            stream=True,
            timeout=self.config.timeout,
        )
        try:
            if response.status_code != 200:
                try:
                    body = response.json()
                except ValueError:
                    body = None
                detail = body.get('error', 'Unknown error') if isinstance(body, dict) else response.text[:200]
                raise StreamTransportError(f"Server error: HTTP {response.status_code} - {detail}")
            # Proxies send text/event-stream without a charset; decode UTF-8 per line
            yield from iter_sse_events(response.iter_lines())
        finally:
            response.close()
