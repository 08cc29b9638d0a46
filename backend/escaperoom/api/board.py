from flask import Blueprint, jsonify, request
from escaperoom.services.engine.catalog import list_stations, max_total
from escaperoom.services.engine.leaderboard import build_leaderboard
from escaperoom.services.engine.tiers import TIERS

board = Blueprint('board', __name__)


@board.route('/stations', methods=['GET'])
def get_stations():
    stations = list_stations()
    return jsonify({
        'stations': [s.to_dict() for s in stations],
        'max_total': sum(s.max_score for s in stations),
    })


@board.route('/tiers', methods=['GET'])
def get_tiers():
    return jsonify({'tiers': [t.to_dict() for t in TIERS], 'max_total': max_total()})


@board.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    """Ranked teams, best first. ``q`` filters by team name."""
    entries = build_leaderboard(query=request.args.get('q'))
    return jsonify({'entries': [e.to_dict() for e in entries]})
