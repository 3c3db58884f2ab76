# -*- coding: utf-8 -*-
"""Identity (accounts, sessions, bearer tokens)."""
