# -*- coding: utf-8 -*-
"""Nutrition domain (daily targets).

Targets are derived from the onboarding profile and the latest weight sample
unless the user has stored manual values, which always take precedence.
"""
