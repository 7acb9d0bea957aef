from __future__ import annotations
from typing import Optional

import requests

from log_utils import get_logger

logger = get_logger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"


class MediaSearchError(Exception):
    """Raised when a media provider request fails."""


class MediaSearchService:
    """Look up demonstration videos and images for an exercise."""

    def __init__(
        self,
        youtube_api_key: Optional[str] = None,
        unsplash_access_key: Optional[str] = None,
        max_results: int = 3,
        timeout: float = 10.0,
    ) -> None:
        self.youtube_api_key = youtube_api_key
        self.unsplash_access_key = unsplash_access_key
        self.max_results = max_results
        self.timeout = timeout

    def _get(self, url: str, **kwargs) -> dict:
        try:
            resp = requests.get(url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise MediaSearchError(f"{url}: {e}") from e

    def search_videos(self, query: str) -> list[dict]:
        if not self.youtube_api_key:
            logger.warning("YouTube API key not configured")
            return []
        data = self._get(
            YOUTUBE_SEARCH_URL,
            params={
                "part": "snippet",
                "q": f"{query} physical therapy exercise",
                "type": "video",
                "maxResults": self.max_results,
                "key": self.youtube_api_key,
            },
        )
        results = []
        try:
            for item in data.get("items", []):
                video_id = item["id"]["videoId"]
                snippet = item["snippet"]
                results.append(
                    {
                        "type": "video",
                        "url": f"https://www.youtube.com/watch?v={video_id}",
                        "thumbnail_url": snippet["thumbnails"]["high"]["url"],
                        "title": snippet["title"],
                    }
                )
        except (KeyError, TypeError) as e:
            raise MediaSearchError(f"unexpected YouTube result: {e}") from e
        return results

    def search_images(self, query: str) -> list[dict]:
        if not self.unsplash_access_key:
            logger.warning("Unsplash access key not configured")
            return []
        data = self._get(
            UNSPLASH_SEARCH_URL,
            params={"query": f"{query} exercise fitness", "per_page": self.max_results},
            headers={"Authorization": f"Client-ID {self.unsplash_access_key}"},
        )
        try:
            return [
                {
                    "type": "image",
                    "url": item["urls"]["regular"],
                    "thumbnail_url": item["urls"]["thumb"],
                    "title": item.get("alt_description") or query,
                }
                for item in data.get("results", [])
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise MediaSearchError(f"unexpected Unsplash result: {e}") from e
