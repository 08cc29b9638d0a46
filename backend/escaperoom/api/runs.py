from flask import Blueprint, jsonify, request, current_app
from escaperoom import socketio
from escaperoom.services.engine.catalog import get_station
from escaperoom.services.engine.keys import generate_key_part
from escaperoom.services.engine.ledger import record, record_if_higher
from escaperoom.services.engine.master_key import final_station_key, master_key_status, validate_master_key
from escaperoom.services.engine.progress import run_progress
from escaperoom.services.engine.runs import ensure_run, get_run
from escaperoom.services.engine.session import Session
from escaperoom.services.engine.timers import clear_attempt, ensure_attempt, resolve_elapsed, start_attempt
from escaperoom.services.stations.scorers import score_station


runs = Blueprint('runs', __name__)


def _session_for(run_id, data):
    """Explicit session for a request: the body's team name, else the run's."""
    team_name = str(data.get('team_name') or '').strip()
    if not team_name:
        run = get_run(run_id)
        team_name = run.team_name if run else None
    return Session(run_id=run_id, team_name=team_name or None)


def _issue_fragment():
    return generate_key_part(int(current_app.config.get('KEY_FRAGMENT_LENGTH', 4)))


def _notify(run_id, station_key):
    payload = {'run_id': run_id, 'station_key': station_key}
    socketio.emit('results_update', payload, to=f"run:{run_id}", namespace='/ws')
    socketio.emit('leaderboard_update', payload, to='leaderboard', namespace='/ws')


@runs.route('', methods=['POST'])
def start_session():
    data = request.get_json(silent=True) or {}
    team_name = str(data.get('team_name') or '').strip()
    if not team_name:
        return jsonify({'error': 'Team name is required'}), 400

    session = Session.start(team_name, run_id=data.get('run_id'))
    existing = get_run(session.run_id)
    if existing and existing.team_name != session.team_name:
        # A run belongs to one team; another team on this device gets a new run
        current_app.logger.info(f"[session] run={session.run_id} owned by another team, starting fresh")
        session = Session.start(team_name)
    run = ensure_run(session.run_id, session.team_name)
    return jsonify({'session': session.to_dict(), 'run': run.to_dict()}), 201


@runs.route('/<string:run_id>', methods=['GET'])
def get_progress(run_id):
    return jsonify(run_progress(run_id))


@runs.route('/<string:run_id>/stations/<string:station_key>/start', methods=['POST'])
def start_station(run_id, station_key):
    station = get_station(station_key)
    start_attempt(run_id, station.station_key)
    return jsonify({'run_id': run_id, 'station_key': station.station_key, 'elapsed_sec': 0})


@runs.route('/<string:run_id>/stations/<string:station_key>/results', methods=['POST'])
def submit_result(run_id, station_key):
    data = request.get_json(silent=True) or {}
    station = get_station(station_key)
    if station.station_key == final_station_key():
        return jsonify({'error': 'The final station is scored by master key validation'}), 400
    if 'score' not in data:
        return jsonify({'error': 'Score is required'}), 400
    meta = data.get('meta') or {}
    if not isinstance(meta, dict):
        return jsonify({'error': 'meta must be an object'}), 400

    session = _session_for(run_id, data)
    writer = record_if_higher if data.get('best_of') else record
    part = _issue_fragment() if data.get('issue_key', True) else None
    result = writer(session, station.station_key, data.get('mode', 'in_person'), data['score'], meta=meta, key_part=part)
    clear_attempt(run_id, station.station_key)
    _notify(run_id, station.station_key)
    return jsonify(result.to_dict()), 201


@runs.route('/<string:run_id>/stations/<string:station_key>/play', methods=['POST'])
def submit_play(run_id, station_key):
    data = request.get_json(silent=True) or {}
    station = get_station(station_key)
    signals = data.get('signals') or {}
    if not isinstance(signals, dict):
        return jsonify({'error': 'signals must be an object'}), 400

    session = _session_for(run_id, data)
    elapsed = resolve_elapsed(run_id, station.station_key, data.get('elapsed_sec'))
    outcome = score_station(station.station_key, signals, elapsed)
    part = _issue_fragment() if outcome.earns_key else None
    writer = record_if_higher if data.get('best_of') else record
    result = writer(session, station.station_key, 'web', outcome.score, meta=outcome.meta, key_part=part)
    clear_attempt(run_id, station.station_key)
    _notify(run_id, station.station_key)
    payload = result.to_dict()
    payload['earned_key'] = outcome.earns_key
    return jsonify(payload), 201


@runs.route('/<string:run_id>/master-key', methods=['GET'])
def get_master_key(run_id):
    # Opening the final station starts its clock; reloading keeps it running
    timer = ensure_attempt(run_id, final_station_key())
    return jsonify(master_key_status(run_id, timer.elapsed_sec()))


@runs.route('/<string:run_id>/master-key', methods=['POST'])
def submit_master_key(run_id):
    data = request.get_json(silent=True) or {}
    parts = data.get('parts')
    if not isinstance(parts, list):
        return jsonify({'error': 'parts must be a list'}), 400

    final_key = final_station_key()
    session = _session_for(run_id, data)
    elapsed = resolve_elapsed(run_id, final_key, data.get('elapsed_sec'))
    outcome = validate_master_key(session, parts, elapsed)
    if outcome.ok:
        clear_attempt(run_id, final_key)
        _notify(run_id, final_key)
    return jsonify(outcome.to_dict())
