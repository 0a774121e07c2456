from sinhala_scribe.pipeline.gateway import ApiGateway, CreditGateway
from sinhala_scribe.pipeline.models import (
    CreditEstimate,
    PipelineRun,
    PipelineState,
    RunContext,
    SegmentResult,
    TranscriptionUnit,
)
from sinhala_scribe.pipeline.orchestrator import ChunkPipeline

__all__ = [
    "ApiGateway",
    "ChunkPipeline",
    "CreditEstimate",
    "CreditGateway",
    "PipelineRun",
    "PipelineState",
    "RunContext",
    "SegmentResult",
    "TranscriptionUnit",
]
