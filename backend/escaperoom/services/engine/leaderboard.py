"""Leaderboard: a read-side projection over every station result.

Totals are recomputed from the ledger on each read and never stored.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from escaperoom import db
from escaperoom.models import Run, StationResult
from .master_key import final_station_key
from .runs import fallback_team_name
from .tiers import Tier, classify


@dataclass
class LeaderboardRow:
    run_id: str
    station_key: str
    score: int
    meta: Optional[dict] = None
    run_team_name: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass
class LeaderboardEntry:
    run_id: str
    team_name: str
    total_score: int
    stations_done: int
    has_master: bool
    last_activity: Optional[datetime] = None
    rank: int = 0
    tier: Optional[Tier] = None

    def to_dict(self):
        return {
            'rank': self.rank,
            'run_id': self.run_id,
            'team_name': self.team_name,
            'total_score': self.total_score,
            'stations_done': self.stations_done,
            'has_master': self.has_master,
            'last_activity': self.last_activity.isoformat() if self.last_activity else None,
            'tier': self.tier.to_dict() if self.tier else None,
        }


def _meta_team_name(meta):
    name = (meta or {}).get('team_name')
    return str(name).strip() if name and str(name).strip() else None


def aggregate(rows: Iterable[LeaderboardRow], final_key: str, unnamed: str = 'Unnamed team') -> List[LeaderboardEntry]:
    """Group results by run, sum, rank and classify.

    Team name: newest ``meta.team_name`` of the run, then the run's own name,
    then ``unnamed``. Ties on total go to the run whose last result came
    first, then to the smaller run id.
    """
    groups = {}
    names = {}
    for row in rows:
        entry = groups.get(row.run_id)
        if entry is None:
            entry = groups[row.run_id] = LeaderboardEntry(
                run_id=row.run_id, team_name='', total_score=0, stations_done=0, has_master=False,
            )
            names[row.run_id] = (None, None, row.run_team_name)
        entry.total_score += int(row.score or 0)
        if row.station_key == final_key:
            entry.has_master = True
        else:
            entry.stations_done += 1
        if row.updated_at is not None and (entry.last_activity is None or row.updated_at > entry.last_activity):
            entry.last_activity = row.updated_at

        meta_name, meta_at, run_name = names[row.run_id]
        candidate = _meta_team_name(row.meta)
        newer = meta_at is None or (row.updated_at is not None and row.updated_at >= meta_at)
        if candidate and newer:
            meta_name, meta_at = candidate, row.updated_at
        names[row.run_id] = (meta_name, meta_at, run_name or row.run_team_name)

    for run_id, entry in groups.items():
        meta_name, _, run_name = names[run_id]
        entry.team_name = meta_name or (run_name or '').strip() or unnamed
        entry.tier = classify(entry.total_score)

    ranked = sorted(
        groups.values(),
        key=lambda e: (-e.total_score, e.last_activity is None, e.last_activity or datetime.min, e.run_id),
    )
    for idx, entry in enumerate(ranked, start=1):
        entry.rank = idx
    return ranked


def load_rows() -> List[LeaderboardRow]:
    query = (
        db.session.query(
            StationResult.run_id,
            StationResult.station_key,
            StationResult.score,
            StationResult.meta,
            StationResult.updated_at,
            Run.team_name,
        )
        .outerjoin(Run, Run.run_id == StationResult.run_id)
        .order_by(StationResult.id)
    )
    return [
        LeaderboardRow(
            run_id=run_id, station_key=station_key, score=score, meta=meta,
            updated_at=updated_at, run_team_name=team_name,
        )
        for run_id, station_key, score, meta, updated_at, team_name in query.all()
    ]


def build_leaderboard(query=None) -> List[LeaderboardEntry]:
    """Ranked leaderboard; ``query`` filters by team name but keeps global ranks."""
    entries = aggregate(load_rows(), final_station_key(), unnamed=fallback_team_name())
    term = str(query or '').strip().lower()
    if term:
        entries = [e for e in entries if term in e.team_name.lower()]
    return entries
