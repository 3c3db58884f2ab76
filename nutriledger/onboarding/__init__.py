# -*- coding: utf-8 -*-
"""Onboarding questionnaire and profile edits."""
