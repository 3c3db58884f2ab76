# -*- coding: utf-8 -*-
"""Dependency injection for API routes."""

from __future__ import annotations

from functools import lru_cache

from .context import LedgerContext


@lru_cache
def get_context() -> LedgerContext:
    """Get the process-wide ledger context."""
    return LedgerContext.from_settings()
