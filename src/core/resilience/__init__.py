"""Resilience utilities for gated retries."""

from .retry import GatedRetryPolicy, GatedRun, retry_with_gate

__all__ = ["GatedRetryPolicy", "GatedRun", "retry_with_gate"]
