"""Extraction pipeline orchestration and the job worker entry point."""

from pva.pipeline.extractor import PipelineResult, ProductDataExtractor
from pva.pipeline.runner import process, run_extraction_job

__all__ = ["PipelineResult", "ProductDataExtractor", "process", "run_extraction_job"]
