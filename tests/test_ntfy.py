"""
Unit tests for the ntfy notifier module.

Tests cover message formatting, request headers, and failure reporting.
"""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from ntfy_watcher.errors import NotificationDeliveryError
from ntfy_watcher.notifier import Notifier
from ntfy_watcher.ntfy import NtfyNotifier, format_message
from ntfy_watcher.rss_parser import FeedItem

ENDPOINT = "https://ntfy.example.com/updates"


def _requests(m: aioresponses, url: str = ENDPOINT) -> list:
    """Return the recorded POST calls for a URL."""
    return m.requests.get(("POST", URL(url)), [])


class TestFormatMessage:
    """Tests for notification message formatting."""

    def test_format(self, sample_feed_item: FeedItem) -> None:
        """Test the subject, link and body layout."""
        assert format_message(sample_feed_item) == "New update: S\nL\nB"

    def test_format_empty_fields(self) -> None:
        """Test that empty fields keep the line layout."""
        assert format_message(FeedItem(id="1", subject="Only subject")) == (
            "New update: Only subject\n\n"
        )


class TestNtfyNotifier:
    """Tests for NtfyNotifier delivery."""

    def test_implements_protocol(self) -> None:
        """Test that NtfyNotifier satisfies the Notifier protocol."""
        assert isinstance(NtfyNotifier(), Notifier)

    async def test_send_with_token(self) -> None:
        """Test that a token is sent as a bearer credential."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, status=200)

            await notifier.send("hello", ENDPOINT, "t")

            calls = _requests(m)

        assert len(calls) == 1
        kwargs = calls[0].kwargs
        assert kwargs["data"] == b"hello"
        assert kwargs["headers"]["Content-Type"] == "text/plain"
        assert kwargs["headers"]["Authorization"] == "Bearer t"
        await notifier.close()

    @pytest.mark.parametrize("token", [None, ""])
    async def test_send_without_token(self, token: str | None) -> None:
        """Test that no Authorization header is sent without a token."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, status=200)

            await notifier.send("hello", ENDPOINT, token)

            calls = _requests(m)

        assert len(calls) == 1
        assert "Authorization" not in calls[0].kwargs["headers"]
        await notifier.close()

    async def test_send_encodes_utf8(self) -> None:
        """Test that non-ASCII messages are sent as UTF-8."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, status=200)

            await notifier.send("café", ENDPOINT)

            calls = _requests(m)

        assert calls[0].kwargs["data"] == "café".encode("utf-8")
        await notifier.close()

    @pytest.mark.parametrize("status", [201, 204, 401, 500])
    async def test_non_200_status_fails(self, status: int) -> None:
        """Test that any status other than 200 is a delivery failure."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, status=status)

            with pytest.raises(NotificationDeliveryError) as exc_info:
                await notifier.send("hello", ENDPOINT)

        assert exc_info.value.endpoint == ENDPOINT
        assert exc_info.value.status == status
        await notifier.close()

    async def test_connection_error_fails(self) -> None:
        """Test that transport errors are delivery failures."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(NotificationDeliveryError) as exc_info:
                await notifier.send("hello", ENDPOINT)

        assert exc_info.value.endpoint == ENDPOINT
        assert exc_info.value.status is None
        await notifier.close()

    async def test_timeout_fails(self) -> None:
        """Test that timeouts are delivery failures."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, exception=asyncio.TimeoutError())

            with pytest.raises(NotificationDeliveryError):
                await notifier.send("hello", ENDPOINT)

        await notifier.close()

    async def test_no_retry(self) -> None:
        """Test that a failed delivery is attempted only once."""
        notifier = NtfyNotifier()

        with aioresponses() as m:
            m.post(ENDPOINT, status=500)
            m.post(ENDPOINT, status=200)

            with pytest.raises(NotificationDeliveryError):
                await notifier.send("hello", ENDPOINT)

            calls = _requests(m)

        assert len(calls) == 1
        await notifier.close()

    async def test_close(self) -> None:
        """Test that close releases the session."""
        notifier = NtfyNotifier()
        await notifier._get_session()

        await notifier.close()

        assert notifier._session is None
