"""Utility helpers for mediajob."""
from .events import EventEmitter
from .strings import capitalize_first

__all__ = ["EventEmitter", "capitalize_first"]
