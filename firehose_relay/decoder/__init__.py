"""Upstream message decoding."""

from .codec import decode, to_jsonable

__all__ = ["decode", "to_jsonable"]
