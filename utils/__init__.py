"""Shared utilities for the backend."""
from utils.cursor import decode_cursor, encode_cursor
from utils.locks import KeyedLock
from utils.retry import retry_reads

__all__ = [
    "decode_cursor",
    "encode_cursor",
    "KeyedLock",
    "retry_reads",
]
