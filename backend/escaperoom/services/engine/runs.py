from flask import current_app, has_app_context
from sqlalchemy.dialects import postgresql, sqlite

from escaperoom import db
from escaperoom.models import Run

_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def dialect_insert(table):
    """``INSERT`` supporting ``ON CONFLICT`` for the bound database."""
    name = db.engine.dialect.name
    try:
        return _INSERTS[name](table)
    except KeyError:
        raise RuntimeError(f'Upserts are not supported on {name!r}') from None


def fallback_team_name():
    if has_app_context():
        return current_app.config.get('UNNAMED_TEAM', 'Unnamed team')
    return 'Unnamed team'


def ensure_run(run_id, team_name=None):
    """Create the run if absent. An existing run keeps its team name.

    Safe to call on every page load; store errors propagate.
    """
    team = str(team_name or '').strip() or fallback_team_name()
    stmt = dialect_insert(Run.__table__).values(
        run_id=run_id, team_name=team
    ).on_conflict_do_nothing(index_elements=['run_id'])
    db.session.execute(stmt)
    db.session.commit()
    return db.session.get(Run, run_id)


def get_run(run_id):
    return db.session.get(Run, run_id)
