"""Transcript and metadata sources backed by public HTTP APIs.

Transcripts come from SerpApi's ``youtube_video_transcript`` engine; display
metadata comes from YouTube oEmbed. Both take an injected ``httpx.AsyncClient``
so tests can substitute a mock transport.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from schemas.extraction import UNTITLED_RECIPE, VideoDetails
from services.extraction.exceptions import TranscriptError


logger = logging.getLogger(__name__)


class SerpApiTranscriptSource:
    """Caption transcripts via SerpApi."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str = "https://serpapi.com/search.json",
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.base_url = base_url

    async def get_transcript(self, video_id: str) -> str:
        """Return the transcript as one space-joined string.

        Raises:
            TranscriptError: ``no_transcript`` when the video has no captions,
                ``rate_limited`` on HTTP 429, ``other`` for everything else.
        """
        if not self.api_key:
            raise TranscriptError("other", "SERPAPI_KEY not configured")

        params = {
            "engine": "youtube_video_transcript",
            "v": video_id,
            "api_key": self.api_key,
        }
        try:
            response = await self.client.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            raise TranscriptError("other", f"Transcript request failed: {e}") from e

        if response.status_code == 429:
            raise TranscriptError("rate_limited", "Rate limit exceeded")
        data = self._json_or_empty(response)
        if response.is_error:
            serp_error = data.get("error") or f"HTTP {response.status_code}"
            logger.error("SerpApi error: %s %s", response.status_code, serp_error)
            raise TranscriptError("other", f"SerpApi error: {serp_error}")
        if data.get("error"):
            logger.error("SerpApi returned error: %s", data["error"])
            raise TranscriptError("other", f"SerpApi error: {data['error']}")

        segments = data.get("transcript") or []
        snippets = [
            seg["snippet"]
            for seg in segments
            if isinstance(seg, dict) and isinstance(seg.get("snippet"), str)
        ]
        transcript = " ".join(snippets).strip()
        if not transcript:
            raise TranscriptError(
                "no_transcript", "No transcript available for this video"
            )
        return transcript

    @staticmethod
    def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


class OEmbedMetadataSource:
    """Video title and channel name via YouTube oEmbed."""

    def __init__(
        self, client: httpx.AsyncClient, oembed_url: str = "https://www.youtube.com/oembed"
    ) -> None:
        self.client = client
        self.oembed_url = oembed_url

    async def get_metadata(self, video_id: str) -> VideoDetails:
        params = {
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "format": "json",
        }
        try:
            response = await self.client.get(self.oembed_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.info("oEmbed lookup failed for %s: %s", video_id, e)
            return VideoDetails()
        if not isinstance(data, dict):
            return VideoDetails()
        title = data.get("title")
        author = data.get("author_name")
        return VideoDetails(
            title=title if isinstance(title, str) and title else UNTITLED_RECIPE,
            channel_title=author if isinstance(author, str) else "",
        )
