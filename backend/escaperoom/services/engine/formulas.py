"""Scoring formulas.

Pure functions only: every station turns its raw signals (correct answers,
mistakes, rules satisfied, elapsed seconds) into a bounded integer score
through these. Inputs are trusted to be within their documented domains;
callers clamp elapsed time to >= 0 before calling.
"""
import math
from typing import NamedTuple

FAST_BONUS_STEP_SEC = 15
MISTAKE_PENALTY = 10


class AccuracyTimeConfig(NamedTuple):
    max_score: int = 200
    target_sec: int = 60
    over_step_sec: int = 3
    bonus_per_step: int = 2
    per_mistake: int = MISTAKE_PENALTY


class ScoreBreakdown(NamedTuple):
    score: int
    base: int
    mistake_penalty: int
    time_bonus: int

    def to_dict(self):
        return self._asdict()


class BonusConfig(NamedTuple):
    base: int = 40
    per_fragment: int = 15
    fast_max: int = 20
    cap: int = 100
    fast_step_sec: int = FAST_BONUS_STEP_SEC


def clamp(value, low, high):
    return max(low, min(high, value))


def round_half_up(value) -> int:
    return int(math.floor(value + 0.5))


def accuracy_time_score(total_items: int, correct: int, mistakes: int, elapsed_sec: float,
                        cfg: AccuracyTimeConfig = AccuracyTimeConfig()) -> ScoreBreakdown:
    """Accuracy share of ``max_score``, minus a fixed cost per mistake, plus a
    bonus for every ``over_step_sec`` finished under ``target_sec``."""
    base = round_half_up(cfg.max_score * correct / max(total_items, 1))
    mistake_penalty = mistakes * cfg.per_mistake
    if cfg.over_step_sec > 0:
        bonus_steps = math.floor(max(0, cfg.target_sec - elapsed_sec) / cfg.over_step_sec)
    else:
        bonus_steps = 0
    time_bonus = bonus_steps * cfg.bonus_per_step
    score = clamp(base - mistake_penalty + time_bonus, 0, cfg.max_score)
    return ScoreBreakdown(score=score, base=base, mistake_penalty=mistake_penalty, time_bonus=time_bonus)


def rule_compliance_score(satisfied_rules: int, total_rules: int, max_score: int) -> int:
    if total_rules <= 0:
        return 0
    return clamp(round_half_up(max_score * satisfied_rules / total_rules), 0, max_score)


def decay_penalty(elapsed_sec: float, start_sec: float, step_sec: float, per_step: int) -> int:
    """Step penalty: ``per_step`` for every full ``step_sec`` past ``start_sec``."""
    if step_sec <= 0:
        return 0
    return math.floor(max(0, elapsed_sec - start_sec) / step_sec) * per_step


def fast_bonus(elapsed_sec: float, cfg: BonusConfig = BonusConfig()) -> int:
    return max(0, cfg.fast_max - math.floor(elapsed_sec / max(cfg.fast_step_sec, 1)))


def completion_bonus(valid_fragments: int, cfg: BonusConfig = BonusConfig(), elapsed_sec: float = 0) -> int:
    raw = cfg.base + valid_fragments * cfg.per_fragment + fast_bonus(elapsed_sec, cfg)
    return clamp(raw, 0, cfg.cap)
