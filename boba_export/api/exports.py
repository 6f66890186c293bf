"""Export API endpoints."""

import logging

from fastapi import APIRouter, status

from boba_export.api.deps import Exporter
from boba_export.render.settings_resolver import resolve_export_settings
from boba_export.schemas.export import ExportRequest, ExportResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/exports",
    response_model=ExportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def export_timeline(request: ExportRequest, exporter: Exporter) -> ExportResponse:
    """
    Export a timeline to a single video file.

    Runs the whole export within the request and returns the delivered filename.
    A second request while an export is running is rejected with 409.
    """
    await exporter.load_engine()
    filename = await exporter.export_timeline(request.timeline, request.settings)
    media_type = resolve_export_settings(request.settings).media_type
    return ExportResponse(filename=filename, media_type=media_type)


@router.get("/exports/status")
async def export_status(exporter: Exporter) -> dict[str, object]:
    """Whether an export is running, and its progress."""
    return {"exporting": exporter.is_exporting, "progress": exporter.progress}


@router.post("/exports/cancel")
async def cancel_export(exporter: Exporter) -> dict[str, bool]:
    """Cancel the running export if the video engine has not started yet."""
    cancelled = exporter.cancel()
    logger.info(f"[EXPORT] Cancel requested (accepted={cancelled})")
    return {"cancelled": cancelled}
