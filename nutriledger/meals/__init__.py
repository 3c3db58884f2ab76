# -*- coding: utf-8 -*-
"""Meal log, photo analysis jobs and barcode products."""
