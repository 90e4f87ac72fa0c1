"""
Progression rules: credits -> rank, and course progress percentages.

Every path that changes credits (chapter completion, test submission,
manual awards) derives rank from compute_rank; rank is never stored on its own.
"""

import math

from smartbanana.models import RankLabel

# Checked top-down; first threshold reached wins
RANK_THRESHOLDS = [
    (100, RankLabel.PLATINUM),
    (80, RankLabel.DIAMOND),
    (60, RankLabel.GOLD),
    (40, RankLabel.SILVER),
    (20, RankLabel.BRONZE),
]

DEFAULT_RANK = RankLabel.BANANA_SPROUT.value


def compute_rank(credits: int) -> str:
    """Calculate rank label from credits"""
    credits = max(0, int(credits or 0))
    for threshold, label in RANK_THRESHOLDS:
        if credits >= threshold:
            return label.value
    return DEFAULT_RANK


def progress_percent(completed: int, total: int) -> int:
    """
    Integer percentage of chapters completed, rounded half up.
    total is floored at 1 so an empty course reads as 0%.
    """
    total = max(1, total)
    percent = int(math.floor(100 * completed / total + 0.5))
    return min(100, max(0, percent))
