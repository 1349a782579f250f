"""Question answering: concept cache, canned templates, rate limiting and the oracle client."""

from .concepts import concept_hash, extract_concepts, normalize_question
from .oracle import OpenAIOracle, build_batch_prompt, parse_numbered_answers
from .question_cache import CachedAnswer, QuestionCache
from .rate_limiter import RateLimiter
from .templates import field_template_answer, pattern_answer

__all__ = [
    "concept_hash",
    "extract_concepts",
    "normalize_question",
    "OpenAIOracle",
    "build_batch_prompt",
    "parse_numbered_answers",
    "CachedAnswer",
    "QuestionCache",
    "RateLimiter",
    "field_template_answer",
    "pattern_answer",
]
