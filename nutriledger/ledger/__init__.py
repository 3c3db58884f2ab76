# -*- coding: utf-8 -*-
"""
Ledger core

Row models, the dual-write repository and the saga used for multi-step writes.
"""

from .repository import DualWriteRepository, ENTITIES
from .saga import Saga

__all__ = [
    'DualWriteRepository',
    'ENTITIES',
    'Saga',
]
