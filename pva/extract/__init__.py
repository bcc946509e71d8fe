"""Stage 2: LLM extraction of product variants from page HTML."""

from pva.extract.ai_extractor import AIContentExtractor, ExtractionResult, classify_llm_error

__all__ = ["AIContentExtractor", "ExtractionResult", "classify_llm_error"]
