"""Decoding of stored record text into structured rows."""

from .sentence_parser import (
    DEFAULT_CONTENT_KEY,
    decode_document,
    decode_record,
    split_fragments,
    truncate_concatenated,
)

__all__ = [
    "DEFAULT_CONTENT_KEY",
    "decode_document",
    "decode_record",
    "split_fragments",
    "truncate_concatenated",
]
