# -*- coding: utf-8 -*-
"""Weight — Pydantic request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..ledger.models import WeightSample


class WeightAddRequest(BaseModel):
    weight: float = Field(..., gt=0, le=500, description="kg")
    timestamp: Optional[datetime] = None


class WeightHistoryResponse(BaseModel):
    current_weight: Optional[float] = None
    count: int
    samples: List[WeightSample]
