"""Optimistic entity collections."""

from .optimistic import MutationRecord, OptimisticStore

__all__ = ["MutationRecord", "OptimisticStore"]
