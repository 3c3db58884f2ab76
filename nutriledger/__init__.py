# -*- coding: utf-8 -*-
"""Nutrition ledger: local-first meal, weight and target tracking."""

__version__ = "0.1.0"
