# -*- coding: utf-8 -*-
"""Remote document mirror with a per-collection live feed."""
