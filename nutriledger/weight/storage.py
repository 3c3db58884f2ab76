# -*- coding: utf-8 -*-
"""Weight — append-only sample log on top of the dual-write repository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from ..errors import NotFound
from ..ledger.models import WeightSample, parse_ts
from ..ledger.repository import DualWriteRepository

logger = logging.getLogger(__name__)


def history(repository: DualWriteRepository, user_id: str) -> List[WeightSample]:
    """All samples for the user, oldest first."""
    samples = [WeightSample.model_validate(r) for r in repository.read_local("weight", {"user_id": user_id})]
    samples.sort(key=lambda s: s.timestamp)
    return samples


def latest_sample(repository: DualWriteRepository, user_id: str) -> Optional[WeightSample]:
    samples = history(repository, user_id)
    return samples[-1] if samples else None


def current_weight(repository: DualWriteRepository, user_id: str) -> Optional[float]:
    latest = latest_sample(repository, user_id)
    return latest.weight if latest else None


async def add_sample(
    repository: DualWriteRepository,
    user_id: str,
    weight: float,
    timestamp: Optional[datetime] = None,
) -> WeightSample:
    sample = WeightSample(
        id=str(uuid4()),
        user_id=user_id,
        weight=weight,
        timestamp=timestamp or datetime.now(),
    )
    await repository.write("weight", sample.to_row())
    logger.info("Weight sample %s (%.1f kg) added for %s", sample.id, sample.weight, user_id)
    return sample


async def delete_sample(repository: DualWriteRepository, user_id: str, sample_id: str) -> bool:
    """Delete one sample; returns True when it was the latest one."""
    row = repository.get_local("weight", sample_id)
    if row is None or row["user_id"] != user_id:
        raise NotFound(f"Weight sample {sample_id} not found")
    latest = latest_sample(repository, user_id)
    was_latest = latest is not None and latest.id == sample_id
    await repository.delete("weight", sample_id)
    return was_latest


def seed_from_profile(
    repository: DualWriteRepository,
    user_id: str,
    weight: Optional[float],
    created_at: Optional[str],
) -> Optional[WeightSample]:
    """Give an empty log one sample taken from the onboarding answers."""
    if history(repository, user_id) or not weight or weight <= 0:
        return None
    sample = WeightSample(
        id=f"{user_id}-onboarding",
        user_id=user_id,
        weight=weight,
        timestamp=parse_ts(created_at) if created_at else datetime.now(),
    )
    repository.commit_local("weight", sample.to_row())
    logger.info("Seeded weight log for %s from onboarding", user_id)
    return sample
