"""Source stores: where the raw bytes of clips come from."""

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import httpx

from boba_export.config import get_settings
from boba_export.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)


class SourceStore(Protocol):
    async def fetch(self, source_ref: str) -> bytes: ...


class LocalSourceStore:
    """Reads sources from the local filesystem.

    Relative refs are resolved against ``base_path``; no ref may point outside it.
    """

    def __init__(self, base_path: str | Path | None = None) -> None:
        self.base_path = Path(base_path or get_settings().local_source_path).resolve()

    def _get_full_path(self, source_ref: str) -> Path:
        if source_ref.startswith("file://"):
            source_ref = urlparse(source_ref).path
        path = Path(source_ref)
        full_path = (path if path.is_absolute() else self.base_path / path).resolve()
        if not full_path.is_relative_to(self.base_path):
            raise SourceUnavailableError(source_ref, reason="outside of source directory")
        return full_path

    async def fetch(self, source_ref: str) -> bytes:
        full_path = self._get_full_path(source_ref)
        try:
            return await asyncio.to_thread(full_path.read_bytes)
        except OSError as e:
            raise SourceUnavailableError(source_ref, reason=e.strerror or str(e)) from e


class HttpSourceStore:
    """Fetches http(s) sources with httpx."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None) -> None:
        self._client = client
        self.timeout = timeout if timeout is not None else get_settings().source_fetch_timeout_s

    async def fetch(self, source_ref: str) -> bytes:
        try:
            if self._client is not None:
                response = await self._client.get(source_ref, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(source_ref, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                source_ref, reason=f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(source_ref, reason=str(e) or type(e).__name__) from e
        return response.content


class CompositeSourceStore:
    """Dispatches http(s) refs to HttpSourceStore and everything else to LocalSourceStore."""

    def __init__(
        self,
        local: LocalSourceStore | None = None,
        http: HttpSourceStore | None = None,
    ) -> None:
        self.local = local or LocalSourceStore()
        self.http = http or HttpSourceStore()

    async def fetch(self, source_ref: str) -> bytes:
        scheme = urlparse(source_ref).scheme.lower()
        if scheme in ("http", "https"):
            return await self.http.fetch(source_ref)
        return await self.local.fetch(source_ref)
