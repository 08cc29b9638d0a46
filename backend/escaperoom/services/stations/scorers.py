from typing import NamedTuple

from escaperoom.services.engine.formulas import (
    AccuracyTimeConfig,
    accuracy_time_score,
    clamp,
    decay_penalty,
    round_half_up,
    rule_compliance_score,
)

STATION_MAX = 200

PHISHING_CARDS = 10
PHISHING_PER_MISTAKE = 5
PHISHING_PENALTY_START_SEC = 180

FIREWALL_RULES = 10
FIREWALL_PER_MISTAKE = 5
FIREWALL_PENALTY_START_SEC = 120
FIREWALL_HARD_LIMIT_SEC = 240

PASSWORD_ATTEMPTS = 3
PASSWORD_PENALTY_START_SEC = 120
PASSWORD_ATTEMPT_LIMIT_SEC = 180

DRONE_POINTS_PER_CORRECT = 8
DRONE_SIGNALS = 25

CONTROL_LEVELS = 12  # 3 + 4 + 5 across the three phases
CONTROL_LIVES = 3
CONTROL_HARD_LIMIT_SEC = 180
CONTROL_TIMING = AccuracyTimeConfig(max_score=STATION_MAX, target_sec=90, over_step_sec=3, bonus_per_step=2)

# Late penalty shared by the timed stations: -2 every 10s
PENALTY_STEP_SEC = 10
PENALTY_PER_STEP = 2

# No game produces counts anywhere near this
SIGNAL_CEILING = 10_000


class StationScore(NamedTuple):
    score: int
    meta: dict
    earns_key: bool


def _count(signals, name, default=None):
    value = signals.get(name, default)
    if value is None:
        raise ValueError(f'Missing signal: {name}')
    try:
        return clamp(int(value), 0, SIGNAL_CEILING)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f'Signal {name} must be an integer') from None


def score_phishing(correct, mistakes, elapsed_sec, unplaced=0):
    """Sort mail cards into safe/phish; unplaced cards count as mistakes."""
    bad = mistakes + unplaced
    base = round_half_up(correct / PHISHING_CARDS * STATION_MAX)
    mistake_penalty = bad * PHISHING_PER_MISTAKE
    time_penalty = decay_penalty(elapsed_sec, PHISHING_PENALTY_START_SEC, PENALTY_STEP_SEC, PENALTY_PER_STEP)
    score = clamp(base - mistake_penalty - time_penalty, 0, STATION_MAX)
    meta = {
        'elapsed_sec': elapsed_sec,
        'correct': correct,
        'mistakes': bad,
        'breakdown': {
            'base': base,
            'mistake_penalty': mistake_penalty,
            'time_penalty': time_penalty,
            'final': score,
        },
    }
    return StationScore(score, meta, True)


def score_firewall(correct, mistakes, elapsed_sec, total_rules=FIREWALL_RULES):
    elapsed_sec = min(elapsed_sec, FIREWALL_HARD_LIMIT_SEC)
    base = correct / max(total_rules, 1) * STATION_MAX
    penalty = mistakes * FIREWALL_PER_MISTAKE
    penalty += decay_penalty(elapsed_sec, FIREWALL_PENALTY_START_SEC, PENALTY_STEP_SEC, PENALTY_PER_STEP)
    score = clamp(round_half_up(base - penalty), 0, STATION_MAX)
    meta = {'elapsed_sec': elapsed_sec, 'correct': correct, 'mistakes': mistakes, 'penalty': penalty}
    return StationScore(score, meta, True)


def score_passwords(attempts, total_elapsed_sec):
    """Each attempt scores by the share of rules it satisfies; the station
    keeps the mean minus the late penalty. No time bonus of any kind."""
    if not attempts:
        raise ValueError('At least one password attempt is required')
    scored = []
    for attempt in attempts[:PASSWORD_ATTEMPTS]:
        satisfied = _count(attempt, 'satisfied')
        total = _count(attempt, 'total')
        scored.append({
            'satisfied': satisfied,
            'total': total,
            'all_ok': total > 0 and satisfied >= total,
            'elapsed_sec': min(_count(attempt, 'elapsed_sec', 0), PASSWORD_ATTEMPT_LIMIT_SEC),
            'score': rule_compliance_score(satisfied, total, STATION_MAX),
        })
    average = round_half_up(sum(a['score'] for a in scored) / len(scored))
    decay = decay_penalty(total_elapsed_sec, PASSWORD_PENALTY_START_SEC, PENALTY_STEP_SEC, PENALTY_PER_STEP)
    score = clamp(average - decay, 0, STATION_MAX)
    meta = {
        'attempts': scored,
        'average': average,
        'decay_points': decay,
        'total_elapsed_sec': total_elapsed_sec,
    }
    return StationScore(score, meta, True)


def score_drones(correct, visited=None):
    correct = min(correct, DRONE_SIGNALS)
    score = clamp(correct * DRONE_POINTS_PER_CORRECT, 0, STATION_MAX)
    meta = {'correct_count': correct}
    if visited is not None:
        meta['visited_hotspots'] = visited
    return StationScore(score, meta, True)


def score_control(levels_completed, mistakes, elapsed_sec, level_points, lives_left, total_levels=CONTROL_LEVELS):
    """Memory sequence game: points per cleared level plus the accuracy/time
    bonus, minus mistakes. Only a flawless run earns the key fragment."""
    elapsed_sec = min(elapsed_sec, CONTROL_HARD_LIMIT_SEC)
    lives_left = min(lives_left, CONTROL_LIVES)
    breakdown = accuracy_time_score(total_levels, levels_completed, mistakes, elapsed_sec, CONTROL_TIMING)
    score = clamp(level_points + breakdown.time_bonus - breakdown.mistake_penalty, 0, STATION_MAX)
    perfect = lives_left == CONTROL_LIVES and levels_completed >= total_levels
    meta = {
        'elapsed_sec': elapsed_sec,
        'lives_left': lives_left,
        'levels_completed': levels_completed,
        'mistakes': mistakes,
        'time_bonus_points': breakdown.time_bonus,
        'error_penalty_points': breakdown.mistake_penalty,
        'base_points': level_points,
    }
    return StationScore(score, meta, perfect)


def _phishing(signals, elapsed):
    return score_phishing(_count(signals, 'correct'), _count(signals, 'mistakes', 0), elapsed,
                          unplaced=_count(signals, 'unplaced', 0))


def _firewall(signals, elapsed):
    return score_firewall(_count(signals, 'correct'), _count(signals, 'mistakes', 0), elapsed,
                          total_rules=_count(signals, 'total_rules', FIREWALL_RULES))


def _passwords(signals, elapsed):
    attempts = signals.get('attempts')
    if not isinstance(attempts, list) or not all(isinstance(a, dict) for a in attempts):
        raise ValueError('Signal attempts must be a list of objects')
    return score_passwords(attempts, elapsed)


def _drones(signals, elapsed):
    visited = signals.get('visited')
    return score_drones(_count(signals, 'correct'), visited=None if visited is None else _count(signals, 'visited'))


def _control(signals, elapsed):
    return score_control(
        _count(signals, 'levels_completed'),
        _count(signals, 'mistakes', 0),
        elapsed,
        _count(signals, 'level_points'),
        _count(signals, 'lives_left', 0),
        total_levels=_count(signals, 'total_levels', CONTROL_LEVELS),
    )


SCORERS = {
    'phishing': _phishing,
    'firewall': _firewall,
    'passwords': _passwords,
    'drones': _drones,
    'control': _control,
}


def score_station(station_key, signals, elapsed_sec):
    """Score a web play of ``station_key`` from the client's raw signals."""
    scorer = SCORERS.get(station_key)
    if scorer is None:
        raise ValueError(f'Station {station_key!r} has no web game')
    return scorer(signals or {}, max(0, int(elapsed_sec or 0)))
