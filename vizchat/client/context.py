"""
Source context for a prompt.

Before a prompt is sent, the first URL in it is fetched through an extraction
service and attached as a tagged block the model is told to prioritise:

    [ARXIV_CONTENT: url]          paper abstract page
    [YOUTUBE_CONTENT: url]        video metadata plus [TRANSCRIPT]
    [YOUTUBE_METADATA: url]       video metadata when no transcript exists
    [URL_CONTENT: url]            any other page

Document text from the current attachment, or from the last document in the
session, comes first. Fetch failures only shrink the context.
"""

import logging
import re
from typing import Optional

import requests

from ..models import Attachment, ChatSession
from .config import ChatConfig

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"(https?://[^\s)]+)")
TRAILING_PUNCTUATION_RE = re.compile(r"[.)\]!,?]+$")
YOUTUBE_ID_RE = re.compile(r"^.*((youtu.be/)|(v/)|(/u/\w/)|(embed/)|(watch\?))\??v?=?([^#&?]*).*")


def find_first_url(text: str) -> Optional[str]:
    match = URL_RE.search(text)
    if not match:
        return None
    return TRAILING_PUNCTUATION_RE.sub("", match.group(1)) or None


def classify_url(url: str) -> str:
    if "arxiv.org" in url:
        return "arxiv"
    if "youtube.com" in url or "youtu.be" in url:
        return "youtube"
    return "web"


def youtube_video_id(url: str) -> Optional[str]:
    match = YOUTUBE_ID_RE.match(url)
    if match and len(match.group(7)) == 11:
        return match.group(7)
    return None


def document_context(attachment: Optional[Attachment], session: Optional[ChatSession]) -> str:
    """Context from the attached document, else from the session's last document."""
    if attachment is not None and attachment.extracted_text:
        return f"[EXTRACTED_DOCUMENT_CONTENT: {attachment.file_name}]\n{attachment.extracted_text}"

    previous = session.last_active_doc if session is not None else None
    if previous is not None and previous.extracted_text:
        tag = "VIDEO_ANALYSIS_SUMMARY" if previous.is_video else "PREVIOUSLY_UPLOADED_DOCUMENT_CONTENT"
        return f"[{tag}: {previous.file_name}]\n{previous.extracted_text}"
    return ""


class ContextBuilder:
    """Builds the source-context block sent alongside a prompt."""

    def __init__(self, config: ChatConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> Optional[str]:
        return self.config.context_endpoint

    def _post(self, path: str, body: dict) -> dict:
        try:
            response = self.session.post(f"{self.endpoint}{path}", json=body, timeout=30)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("Context fetch %s failed: %s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def fetch_url_content(self, url: str) -> str:
        return self._post("/api/fetch-url", {"url": url}).get("content") or ""

    def fetch_transcript(self, video_id: str) -> Optional[str]:
        return self._post("/api/fetch-transcript", {"videoId": video_id}).get("transcript") or None

    def url_context(self, url: str) -> str:
        kind = classify_url(url)
        logger.debug("Fetching %s context for %s", kind, url)
        if kind == "arxiv":
            return f"[ARXIV_CONTENT: {url}]\n{self.fetch_url_content(url)}"
        if kind == "youtube":
            metadata = self.fetch_url_content(url)
            video_id = youtube_video_id(url)
            transcript = self.fetch_transcript(video_id) if video_id else None
            if transcript:
                return f"[YOUTUBE_CONTENT: {url}]\n{metadata}\n\n[TRANSCRIPT]\n{transcript}"
            return f"[YOUTUBE_METADATA: {url}]\n{metadata}"
        return f"[URL_CONTENT: {url}]\n{self.fetch_url_content(url)}"

    def build(self, prompt: str, attachment: Optional[Attachment] = None,
              chat_session: Optional[ChatSession] = None) -> str:
        context = document_context(attachment, chat_session)
        url = find_first_url(prompt)
        if url and self.endpoint:
            block = self.url_context(url)
            context = f"{context}\n\n{block}" if context else block
        return context
