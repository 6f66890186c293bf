from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from boba_export.render.engine import FFmpegEngine
from boba_export.render.pipeline import TimelineExporter
from boba_export.render.preprocessor import Preprocessor
from boba_export.services.delivery import LocalFileDelivery
from boba_export.services.preprocessing_codec import FFmpegCodec
from boba_export.services.source_store import CompositeSourceStore


@lru_cache
def get_exporter() -> TimelineExporter:
    """One exporter per process: the engine is shared by all requests."""
    return TimelineExporter(
        preprocessor=Preprocessor(CompositeSourceStore(), FFmpegCodec()),
        engine=FFmpegEngine(),
        delivery=LocalFileDelivery(),
    )


Exporter = Annotated[TimelineExporter, Depends(get_exporter)]
