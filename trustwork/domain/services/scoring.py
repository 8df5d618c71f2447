"""Pure scoring helpers for the assessment engine.

Nothing here touches the database; the engine feeds in the materialised
question slots and persists what comes back.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from trustwork.infrastructure.db.models import OPTION_LETTERS, AttemptQuestion


@dataclass(slots=True, frozen=True)
class ScoreCard:
    correct: int
    total: int
    score: int
    passing_score: int
    excellence_score: int

    @property
    def passed(self) -> bool:
        return self.score >= self.passing_score

    @property
    def excellent(self) -> bool:
        return self.passed and self.score >= self.excellence_score


def round_half_up(value: Decimal | float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def percentage(correct: int, total: int) -> int:
    """round(100 * correct / total) with halves rounded up."""
    if total <= 0:
        return 0
    return int((Decimal(100 * correct) / Decimal(total)).quantize(Decimal(1), ROUND_HALF_UP))


def threshold(fraction: float) -> int:
    """Minimum integer score satisfying ``score >= 100 * fraction``."""
    return int((Decimal(str(fraction)) * 100).to_integral_value(rounding=ROUND_CEILING))


def score_slots(
    slots: Sequence[AttemptQuestion],
    *,
    passing_fraction: float,
    excellence_fraction: float,
) -> ScoreCard:
    correct = sum(1 for slot in slots if slot.is_correct)
    total = len(slots)
    return ScoreCard(
        correct=correct,
        total=total,
        score=percentage(correct, total),
        passing_score=threshold(passing_fraction),
        excellence_score=threshold(excellence_fraction),
    )


def draw_question_order(attempt_id: str, question_ids: Sequence[str], count: int) -> list[str]:
    """Pick ``count`` distinct questions with a generator seeded by the attempt id.

    ``question_ids`` must be given in a stable order (the engine sorts by id)
    so the draw is reproducible.
    """
    rng = random.Random(attempt_id)
    pool = list(question_ids)
    rng.shuffle(pool)
    return pool[:count]


def shuffle_options(attempt_id: str, position: int) -> list[str]:
    """Displayed option order for one slot, as original letters."""
    rng = random.Random(f"{attempt_id}:{position}")
    order = list(OPTION_LETTERS)
    rng.shuffle(order)
    return order


def displayed_letter(option_order: Sequence[str], original_letter: str) -> str:
    return OPTION_LETTERS[list(option_order).index(original_letter)]
