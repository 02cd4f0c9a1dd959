# utils/__init__.py
"""General utility functions for the lesson generator."""

from .logging import setup_logging
from .response_parsing import (
    as_list,
    as_str_list,
    extract_json,
    split_list_lines,
    strip_code_fences,
)
from .text_processing import (
    STOPWORDS,
    alphabetic_token_ratio,
    capitalised_phrases,
    contains_word,
    content_words,
    count_words,
    rank_by_frequency,
    split_paragraphs,
    split_sentences,
    truncate_chars,
    word_tokens,
)

__all__ = [
    "setup_logging",
    "extract_json",
    "split_list_lines",
    "strip_code_fences",
    "as_list",
    "as_str_list",
    "STOPWORDS",
    "alphabetic_token_ratio",
    "capitalised_phrases",
    "contains_word",
    "content_words",
    "count_words",
    "rank_by_frequency",
    "split_paragraphs",
    "split_sentences",
    "truncate_chars",
    "word_tokens",
]
