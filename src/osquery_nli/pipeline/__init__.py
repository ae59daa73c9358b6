"""Question-to-answer pipeline: orchestration, stages and the result cache."""

from osquery_nli.pipeline.base import (
    PipelineRun,
    PipelineStage,
    Question,
    execute_statements,
    split_statements,
)
from osquery_nli.pipeline.cache import CacheFingerprint, ResultCache, normalize_question
from osquery_nli.pipeline.orchestrator import QueryPipeline

__all__ = [
    "CacheFingerprint",
    "PipelineRun",
    "PipelineStage",
    "QueryPipeline",
    "Question",
    "ResultCache",
    "execute_statements",
    "normalize_question",
    "split_statements",
]
