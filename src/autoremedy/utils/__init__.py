"""Shared async and filesystem utilities."""

from autoremedy.utils.concurrency import Deadline, run_many, run_with_timeout
from autoremedy.utils.fs import atomic_write, is_within, resolve_within

__all__ = [
    "Deadline",
    "atomic_write",
    "is_within",
    "resolve_within",
    "run_many",
    "run_with_timeout",
]
