"""Delivery sinks for finished exports."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol

from boba_export.config import get_settings
from boba_export.constants.formats import CONTAINER_EXTENSIONS
from boba_export.exceptions import DeliveryError

logger = logging.getLogger(__name__)

_DELIVERABLE_EXTENSIONS = frozenset(f".{ext}" for ext in CONTAINER_EXTENSIONS.values())


class DeliverySink(Protocol):
    async def deliver(self, data: bytes, filename: str, media_type: str) -> None: ...


class LocalFileDelivery:
    """Saves exports into a local directory."""

    def __init__(self, output_dir: str | Path | None = None) -> None:
        self.output_dir = Path(output_dir or get_settings().output_dir)

    def get_file_path(self, filename: str) -> Path:
        return self.output_dir / filename

    def _write(self, data: bytes, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        full_path = self.get_file_path(filename)
        # Write next to the target then rename so a failed write leaves no partial file
        tmp_path = full_path.with_name(f".{filename}.part")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, full_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        return full_path

    async def deliver(self, data: bytes, filename: str, media_type: str) -> None:
        if Path(filename).name != filename:
            raise DeliveryError(f"Invalid export filename: {filename}")
        if Path(filename).suffix.lower() not in _DELIVERABLE_EXTENSIONS:
            raise DeliveryError(f"Unsupported export file type: {filename}")
        try:
            full_path = await asyncio.to_thread(self._write, data, filename)
        except OSError as e:
            raise DeliveryError(f"Failed to save {filename}: {e}") from e
        logger.info(f"[DELIVERY] Saved {filename} ({len(data)} bytes, {media_type}) to {full_path}")
