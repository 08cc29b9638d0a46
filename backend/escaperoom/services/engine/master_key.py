"""Master key validation for the final station.

The expected key is the multiset of fragments issued by every other station
of the run. A submission matches when the same fragments, compared trimmed
and case-insensitively, appear the same number of times in any order.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app, has_app_context

from .catalog import max_total
from .formulas import BonusConfig, clamp, completion_bonus, fast_bonus
from .keys import normalize_key_part
from .ledger import list_for_run, record
from .tiers import Tier, classify

DEFAULT_FINAL_STATION = 'master_reset'


def final_station_key():
    if has_app_context():
        return current_app.config.get('FINAL_STATION_KEY', DEFAULT_FINAL_STATION)
    return DEFAULT_FINAL_STATION


def bonus_config():
    if not has_app_context():
        return BonusConfig()
    cfg = current_app.config
    defaults = BonusConfig()
    return BonusConfig(
        base=int(cfg.get('MASTER_BONUS_BASE', defaults.base)),
        per_fragment=int(cfg.get('MASTER_BONUS_PER_FRAGMENT', defaults.per_fragment)),
        fast_max=int(cfg.get('MASTER_BONUS_FAST_MAX', defaults.fast_max)),
        cap=int(cfg.get('MASTER_BONUS_CAP', defaults.cap)),
    )


@dataclass
class MasterKeyOutcome:
    ok: bool
    expected_count: int
    submitted_count: int
    station_total: int
    reason: Optional[str] = None  # mismatch
    bonus: int = 0
    breakdown: dict = field(default_factory=dict)
    display_total: int = 0
    tier: Optional[Tier] = None
    result: object = None

    def to_dict(self):
        return {
            'ok': self.ok,
            'reason': self.reason,
            'expected_count': self.expected_count,
            'submitted_count': self.submitted_count,
            'station_total': self.station_total,
            'bonus': self.bonus,
            'bonus_breakdown': self.breakdown,
            'display_total': self.display_total,
            'tier': self.tier.to_dict() if self.tier else None,
            'result': self.result.to_dict() if self.result is not None else None,
        }


def _station_rows(run_id):
    return list_for_run(run_id, exclude_station_keys=[final_station_key()])


def expected_fragments(run_id) -> List[str]:
    return [normalize_key_part(r.key_part) for r in _station_rows(run_id) if r.key_part]


def fragments_match(submitted, expected) -> bool:
    return Counter(normalize_key_part(s) for s in submitted) == Counter(normalize_key_part(e) for e in expected)


def _display_total(station_total, bonus):
    return clamp(station_total + bonus, 0, max_total())


def master_key_status(run_id, elapsed_sec=0):
    """Preview of what a correct submission right now would be worth."""
    rows = _station_rows(run_id)
    parts = [r.key_part for r in rows if r.key_part]
    total = sum(r.score for r in rows)
    cfg = bonus_config()
    bonus = completion_bonus(len(parts), cfg, elapsed_sec)
    display = _display_total(total, bonus)
    return {
        'expected_count': len(parts),
        'station_total': total,
        'elapsed_sec': elapsed_sec,
        'preview_bonus': bonus,
        'preview_total': display,
        'max_total': max_total(),
        'tier': classify(display).to_dict(),
    }


def validate_master_key(session, submitted, elapsed_sec, cfg=None) -> MasterKeyOutcome:
    """Check the submitted fragments and, on a match, record the bonus.

    Nothing is written on a mismatch, so callers may retry freely.
    """
    cfg = cfg or bonus_config()
    elapsed_sec = max(0, int(elapsed_sec or 0))
    rows = _station_rows(session.run_id)
    expected = [normalize_key_part(r.key_part) for r in rows if r.key_part]
    entered = [normalize_key_part(s) for s in (submitted or [])]
    total = sum(r.score for r in rows)
    outcome = MasterKeyOutcome(
        ok=False,
        expected_count=len(expected),
        submitted_count=len(entered),
        station_total=total,
    )

    if not fragments_match(entered, expected):
        outcome.reason = 'mismatch'
        current_app.logger.info(
            f"[master-key-mismatch] run={session.run_id} expected={len(expected)} submitted={len(entered)}"
        )
        return outcome

    bonus = completion_bonus(len(expected), cfg, elapsed_sec)
    display = _display_total(total, bonus)
    tier = classify(display)
    breakdown = {
        'base': cfg.base,
        'per_part': cfg.per_fragment,
        'fast_bonus': fast_bonus(elapsed_sec, cfg),
        'cap': cfg.cap,
    }
    result = record(
        session,
        final_station_key(),
        'web',
        bonus,
        meta={
            'parts': entered,
            'parts_count': len(expected),
            'elapsed_sec': elapsed_sec,
            'bonus_breakdown': breakdown,
            'display_total_after_bonus': display,
            'tier': tier.to_dict(),
        },
    )
    outcome.ok = True
    outcome.bonus = bonus
    outcome.breakdown = breakdown
    outcome.display_total = display
    outcome.tier = tier
    outcome.result = result
    return outcome
