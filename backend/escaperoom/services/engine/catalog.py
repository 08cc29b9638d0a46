import re
import unicodedata

from escaperoom import db
from escaperoom.models import StationDefinition
from .errors import UnknownStationError

DEFAULT_STATIONS = (
    {'station_key': 'phishing', 'title': 'Phishing Detection', 'max_score': 200, 'order_index': 1},
    {'station_key': 'passwords', 'title': 'Password Forge', 'max_score': 200, 'order_index': 2},
    {'station_key': 'firewall', 'title': 'Firewall Rules', 'max_score': 200, 'order_index': 3},
    {'station_key': 'drones', 'title': 'Drone Signals', 'max_score': 200, 'order_index': 4},
    {'station_key': 'control', 'title': 'Control Room', 'max_score': 200, 'order_index': 5},
    {'station_key': 'master_reset', 'title': 'Master Reset', 'max_score': 100, 'order_index': 6},
)

_HIDDEN_MARKERS = ('penalty', 'penalizacion', 'penalidad')


def _ascii(value):
    folded = unicodedata.normalize('NFD', str(value or '').lower().strip())
    return ''.join(ch for ch in folded if not unicodedata.combining(ch))


def _squash(value):
    return re.sub(r'[-_]+', '', str(value or '').lower().strip())


def is_hidden(station):
    """Penalty-like definitions are bookkeeping rows, not playable stations."""
    title, key = _ascii(station.title), _ascii(station.station_key)
    return any(marker in title or marker in key for marker in _HIDDEN_MARKERS)


def seed_stations(definitions=DEFAULT_STATIONS):
    """Insert missing catalog rows. Existing rows are left untouched."""
    created = 0
    for item in definitions:
        if db.session.get(StationDefinition, item['station_key']) is None:
            db.session.add(StationDefinition(**item))
            created += 1
    db.session.commit()
    return created


def list_stations(include_hidden=False):
    stations = StationDefinition.query.order_by(StationDefinition.order_index, StationDefinition.station_key).all()
    if include_hidden:
        return stations
    return [s for s in stations if not is_hidden(s)]


def resolve_station_key(raw_key):
    """Map a client supplied key onto a catalog key, tolerating case, padding
    and ``-``/``_`` differences. Returns None when nothing matches."""
    key = str(raw_key or '').lower().strip()
    if not key:
        return None
    if db.session.get(StationDefinition, key) is not None:
        return key
    squashed = _squash(key)
    for station in StationDefinition.query.all():
        if _squash(station.station_key) == squashed:
            return station.station_key
    return None


def get_station(raw_key):
    key = resolve_station_key(raw_key)
    if key is None:
        raise UnknownStationError(raw_key)
    return db.session.get(StationDefinition, key)


def max_total():
    """Sum of every playable station ceiling, bonus station included."""
    return sum(s.max_score for s in list_stations())
