"""Aggregate statistics over the record set."""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from typing import Dict, List, Sequence

from libs.core.models import Analytics, CategoryScore, Record, RecentActivity

RECENT_WINDOW_MS = 30 * 24 * 60 * 60 * 1000


def _round1(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def compute_analytics(records: Sequence[Record], storage_size: int, now: int) -> Analytics:
    total = len(records)
    total_views = sum(r.views for r in records)
    average_score = sum(r.score for r in records) / total if total else 0.0
    average_rating = sum(r.rating for r in records) / total if total else 0.0

    category_stats: Dict[str, int] = dict(Counter(r.category for r in records))
    folder_stats: Dict[str, int] = dict(Counter(r.folder for r in records))

    scores: Dict[str, List[int]] = defaultdict(list)
    for record in records:
        scores[record.category].append(record.score)
    top_categories = sorted(
        (
            CategoryScore(category=cat, average_score=sum(vals) / len(vals), count=len(vals))
            for cat, vals in scores.items()
        ),
        key=lambda c: c.average_score,
        reverse=True,
    )

    cutoff = now - RECENT_WINDOW_MS
    recent = sum(1 for r in records if r.timestamp > cutoff)

    return Analytics(
        total_prompts=total,
        total_views=total_views,
        average_score=_round1(average_score),
        average_rating=_round1(average_rating),
        category_stats=category_stats,
        folder_stats=folder_stats,
        top_categories=top_categories,
        recent_activity=RecentActivity(
            count=recent,
            percentage=(recent / total) * 100 if total else 0.0,
        ),
        storage_size=storage_size,
    )


__all__ = ["RECENT_WINDOW_MS", "compute_analytics"]
