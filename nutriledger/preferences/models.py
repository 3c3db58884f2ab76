# -*- coding: utf-8 -*-
"""Preferences — which daily widgets a user wants to see."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel

FLAGS = ("show_calories_circle", "show_protein_bar", "show_fat_bar", "show_carbs_bar")


class DisplayPreferences(BaseModel):
    show_calories_circle: bool = True
    show_protein_bar: bool = True
    show_fat_bar: bool = True
    show_carbs_bar: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DisplayPreferences":
        return cls(**{flag: bool(row.get(flag, 1)) for flag in FLAGS})

    def to_row(self, user_id: str) -> Dict[str, Any]:
        row: Dict[str, Any] = {"user_id": user_id}
        row.update({flag: int(getattr(self, flag)) for flag in FLAGS})
        return row
