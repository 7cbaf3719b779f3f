"""Observability helpers for Rovel."""

from rovel.observability.metrics import metrics

__all__ = ["metrics"]
