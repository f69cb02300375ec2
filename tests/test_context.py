"""Tests for URL detection and source-context assembly."""

from unittest.mock import Mock

import pytest
import requests

from vizchat.client.config import ChatConfig
from vizchat.client.context import (
    ContextBuilder,
    classify_url,
    document_context,
    find_first_url,
    youtube_video_id,
)
from vizchat.models import Attachment, ChatSession

ENDPOINT = "http://context.local"


def json_response(body):
    return Mock(json=Mock(return_value=body))


def builder(session):
    return ContextBuilder(ChatConfig(context_endpoint=ENDPOINT), session=session)


class TestUrls:

    @pytest.mark.parametrize("text,url", [
        ("see https://example.com/page.", "https://example.com/page"),
        ("(link: http://a.b/c?d=1)", "http://a.b/c?d=1"),
        ("two https://first.io and https://second.io", "https://first.io"),
        ("what about https://x.org/path!?", "https://x.org/path"),
        ("no link here", None),
    ])
    def test_find_first_url(self, text, url):
        assert find_first_url(text) == url

    @pytest.mark.parametrize("url,kind", [
        ("https://arxiv.org/abs/1706.03762", "arxiv"),
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "youtube"),
        ("https://youtu.be/dQw4w9WgXcQ", "youtube"),
        ("https://example.com", "web"),
    ])
    def test_classify_url(self, url, kind):
        assert classify_url(url) == kind

    @pytest.mark.parametrize("url,video_id", [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/dQw4w9WgXcQ?start=3", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/watch?v=short", None),
        ("https://example.com/video", None),
    ])
    def test_youtube_video_id(self, url, video_id):
        assert youtube_video_id(url) == video_id


class TestDocumentContext:

    def test_current_attachment_wins(self):
        attachment = Attachment(mime_type="text/plain", file_name="notes.txt", extracted_text="hello")
        session = ChatSession(last_active_doc=Attachment(mime_type="text/plain", file_name="old.txt",
                                                         extracted_text="old"))

        assert document_context(attachment, session) == "[EXTRACTED_DOCUMENT_CONTENT: notes.txt]\nhello"

    def test_previous_document(self):
        session = ChatSession(last_active_doc=Attachment(mime_type="text/csv", file_name="data.csv",
                                                         extracted_text="a,b"))

        assert document_context(None, session) == "[PREVIOUSLY_UPLOADED_DOCUMENT_CONTENT: data.csv]\na,b"

    def test_previous_video_summary(self):
        session = ChatSession(last_active_doc=Attachment(mime_type="video/mp4", file_name="talk.mp4",
                                                         extracted_text="A talk about stars"))

        assert document_context(None, session) == "[VIDEO_ANALYSIS_SUMMARY: talk.mp4]\nA talk about stars"

    def test_nothing(self):
        assert document_context(None, ChatSession()) == ""
        assert document_context(None, None) == ""


class TestContextBuilder:

    def test_web_page(self):
        session = Mock()
        session.post.return_value = json_response({"content": "Page body"})

        context = builder(session).build("Summarise https://example.com/a.")

        assert context == "[URL_CONTENT: https://example.com/a]\nPage body"
        assert session.post.call_args[0][0] == f"{ENDPOINT}/api/fetch-url"
        assert session.post.call_args[1]["json"] == {"url": "https://example.com/a"}

    def test_arxiv(self):
        session = Mock()
        session.post.return_value = json_response({"content": "Attention Is All You Need"})

        context = builder(session).build("https://arxiv.org/abs/1706.03762")

        assert context.startswith("[ARXIV_CONTENT: https://arxiv.org/abs/1706.03762]\n")

    def test_youtube_with_transcript(self):
        session = Mock()
        session.post.side_effect = [
            json_response({"content": "Title: Never Gonna"}),
            json_response({"transcript": "We're no strangers"}),
        ]
        url = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

        context = builder(session).build(f"What is said in {url}")

        assert context == f"[YOUTUBE_CONTENT: {url}]\nTitle: Never Gonna\n\n[TRANSCRIPT]\nWe're no strangers"
        assert session.post.call_args_list[1][1]["json"] == {"videoId": "dQw4w9WgXcQ"}

    def test_youtube_without_transcript(self):
        session = Mock()
        session.post.side_effect = [json_response({"content": "Title only"}), json_response({})]
        url = "https://youtu.be/dQw4w9WgXcQ"

        assert builder(session).build(url) == f"[YOUTUBE_METADATA: {url}]\nTitle only"

    def test_fetch_failure_leaves_empty_block(self):
        session = Mock()
        session.post.side_effect = requests.exceptions.Timeout("slow")

        assert builder(session).build("https://example.com") == "[URL_CONTENT: https://example.com]\n"

    def test_non_object_response_is_ignored(self):
        session = Mock()
        session.post.return_value = json_response(["unexpected"])

        assert builder(session).fetch_url_content("https://example.com") == ""

    def test_document_and_url_are_joined(self):
        session = Mock()
        session.post.return_value = json_response({"content": "Body"})
        attachment = Attachment(mime_type="text/plain", file_name="a.txt", extracted_text="doc")

        context = builder(session).build("compare with https://example.com", attachment)

        assert context == "[EXTRACTED_DOCUMENT_CONTENT: a.txt]\ndoc\n\n[URL_CONTENT: https://example.com]\nBody"

    def test_no_endpoint_skips_fetch(self):
        session = Mock()
        context_builder = ContextBuilder(ChatConfig(), session=session)

        assert context_builder.build("https://example.com") == ""
        session.post.assert_not_called()
