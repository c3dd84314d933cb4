"""
Concurrency helpers shared across Pokedex components.

Exposes :func:`create_executor` (a thread pool for IO-bound work) and
:func:`iter_completed`, which yields results in completion order.
"""

from .executors import create_executor, iter_completed

__all__ = ["create_executor", "iter_completed"]
