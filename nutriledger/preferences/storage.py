# -*- coding: utf-8 -*-
"""Preferences — dual-written display preference rows."""

from __future__ import annotations

from ..ledger.repository import DualWriteRepository
from .models import DisplayPreferences


def get_preferences(repository: DualWriteRepository, user_id: str) -> DisplayPreferences:
    row = repository.get_local("display_preferences", user_id)
    return DisplayPreferences.from_row(row) if row else DisplayPreferences()


async def save_preferences(
    repository: DualWriteRepository,
    user_id: str,
    preferences: DisplayPreferences,
) -> DisplayPreferences:
    await repository.write("display_preferences", preferences.to_row(user_id))
    return preferences
