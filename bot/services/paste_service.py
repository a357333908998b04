from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

from core.config import PasteConfig

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PasteLink:
    key: str
    url: str
    short: str
    raw: str


class PasteService:
    """Uploads transcripts to a sourcebin-compatible paste API.

    Every failure path returns ``None`` so callers can carry on without a link.
    """

    def __init__(self, config: PasteConfig) -> None:
        self.config = config

    def _build_payload(self, content: str, title: str, description: str) -> dict[str, object]:
        return {
            "title": title,
            "description": description,
            "files": [{"content": content, "languageId": self.config.language_id}],
        }

    def _link_for(self, key: str) -> PasteLink:
        return PasteLink(
            key=key,
            url=f"{self.config.base_url}/{key}",
            short=f"{self.config.short_url}/{key}",
            raw=f"{self.config.base_url}/raw/files/{key}/0",
        )

    async def post(self, content: str, title: str, description: str = "") -> PasteLink | None:
        if not self.config.enabled:
            return None
        payload = self._build_payload(content, title, description)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.config.api_url, json=payload) as response:
                    if response.status >= 400:
                        LOGGER.warning("Paste upload rejected. status=%s title=%s", response.status, title)
                        return None
                    body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError):
            LOGGER.exception("Paste upload failed. title=%s", title)
            return None

        key = body.get("key") if isinstance(body, dict) else None
        if not key:
            LOGGER.warning("Paste upload returned no key. title=%s", title)
            return None
        return self._link_for(str(key))
