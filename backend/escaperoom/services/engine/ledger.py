"""Station result ledger.

One current row per (run, station). Every write is a single
``INSERT ... ON CONFLICT (run_id, station_key) DO UPDATE`` so two concurrent
submissions for the same station collapse into one row (last write wins)
and a write never leaves a partial row behind.
"""
import math

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from escaperoom import db
from escaperoom.models import StationResult, STATION_MODES, utcnow
from .catalog import get_station
from .formulas import clamp, round_half_up
from .keys import normalize_key_part
from .runs import dialect_insert, ensure_run

FK_VIOLATION = '23503'


def normalize_mode(mode):
    value = str(mode or 'web').strip().lower().replace('-', '_')
    if value not in STATION_MODES:
        raise ValueError(f'Invalid mode {mode!r}; expected one of {", ".join(STATION_MODES)}')
    return value


def clamp_score(score, max_score):
    """Coerce to an int inside [0, max_score]; junk becomes 0."""
    if isinstance(score, int) and not isinstance(score, bool) and abs(score) > max_score:
        return max_score if score > 0 else 0
    try:
        value = float(score)
    except (TypeError, ValueError, OverflowError):
        return 0
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return max_score if value > 0 else 0
    return clamp(round_half_up(value), 0, max_score)


def is_missing_run(exc):
    """True when an IntegrityError is the station_result -> run foreign key."""
    orig = getattr(exc, 'orig', None)
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if code is not None:
        return str(code) == FK_VIOLATION
    return 'FOREIGN KEY constraint failed' in str(orig or exc)


def _upsert(values, keep_best):
    table = StationResult.__table__
    stmt = dialect_insert(table).values(**values)
    excluded = stmt.excluded
    if keep_best:
        score = sa.case((excluded.score > table.c.score, excluded.score), else_=table.c.score)
    else:
        score = excluded.score
    stmt = stmt.on_conflict_do_update(
        index_elements=['run_id', 'station_key'],
        set_={
            'mode': excluded.mode,
            'score': score,
            'meta': excluded.meta,
            # An issued fragment is never revoked or replaced
            'key_part': sa.func.coalesce(table.c.key_part, excluded.key_part),
            'updated_at': excluded.updated_at,
        },
    )
    try:
        db.session.execute(stmt)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def _write(session, station_key, mode, score, meta, key_part, keep_best):
    station = get_station(station_key)
    payload_meta = dict(meta or {})
    legacy_part = payload_meta.pop('key_part', None)
    part = normalize_key_part(key_part or legacy_part) or None
    payload_meta['team_name'] = session.team_name
    values = {
        'run_id': session.run_id,
        'station_key': station.station_key,
        'mode': normalize_mode(mode),
        'score': clamp_score(score, station.max_score),
        'key_part': part,
        'meta': payload_meta,
        'updated_at': utcnow(),
    }

    try:
        _upsert(values, keep_best)
    except IntegrityError as exc:
        if not is_missing_run(exc):
            raise
        # Result arrived before the run row: create the parent, retry once
        current_app.logger.info(f"[ledger-retry] run={session.run_id} station={station.station_key} missing run, ensuring")
        ensure_run(session.run_id, session.team_name)
        _upsert(values, keep_best)

    current_app.logger.info(
        f"[ledger-write] run={session.run_id} station={station.station_key} score={values['score']} best_of={keep_best}"
    )
    return StationResult.query.filter_by(run_id=session.run_id, station_key=station.station_key).one()


def record(session, station_key, mode, score, meta=None, key_part=None):
    """Store the result for this station, replacing any previous one."""
    return _write(session, station_key, mode, score, meta, key_part, keep_best=False)


def record_if_higher(session, station_key, mode, score, meta=None, key_part=None):
    """Store the result keeping the best score seen for this station.

    A lower or equal score leaves the stored score as is but still refreshes
    mode and metadata.
    """
    return _write(session, station_key, mode, score, meta, key_part, keep_best=True)


def list_for_run(run_id, exclude_station_keys=()):
    query = StationResult.query.filter(StationResult.run_id == run_id)
    excluded = [k for k in exclude_station_keys if k]
    if excluded:
        query = query.filter(StationResult.station_key.notin_(excluded))
    return query.order_by(StationResult.created_at, StationResult.id).all()


def get_result(run_id, station_key):
    return StationResult.query.filter_by(run_id=run_id, station_key=station_key).first()
