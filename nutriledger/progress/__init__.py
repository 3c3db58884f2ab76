# -*- coding: utf-8 -*-
"""Charts, window navigation and goal progress."""
