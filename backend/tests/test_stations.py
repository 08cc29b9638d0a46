import pytest

from escaperoom.services.stations.scorers import (
    score_control,
    score_drones,
    score_firewall,
    score_passwords,
    score_phishing,
    score_station,
)


def test_phishing_penalises_mistakes_unplaced_and_lateness():
    assert score_phishing(10, 0, 60).score == 200
    # 8/10 -> 160, 2 wrong + 0 unplaced -> -10
    assert score_phishing(8, 2, 60).score == 150
    # unplaced cards are mistakes too
    assert score_phishing(8, 0, 60, unplaced=2).meta['mistakes'] == 2
    # 3 full 10s blocks after 180s -> -6
    late = score_phishing(10, 0, 215)
    assert late.score == 194
    assert late.meta['breakdown']['time_penalty'] == 6
    assert late.earns_key


def test_firewall_clamps_time_and_rounds():
    assert score_firewall(10, 0, 100).score == 200
    # 7/10 -> 140, 3 mistakes -> -15
    assert score_firewall(7, 3, 100).score == 125
    # elapsed past the hard limit is capped at 240s: (240-120)/10*2 = 24
    capped = score_firewall(10, 0, 999)
    assert capped.meta['elapsed_sec'] == 240
    assert capped.score == 176


def test_passwords_average_minus_decay():
    attempts = [
        {'satisfied': 6, 'total': 6},
        {'satisfied': 3, 'total': 6},
        {'satisfied': 6, 'total': 6, 'elapsed_sec': 500},
    ]
    result = score_passwords(attempts, total_elapsed_sec=100)
    # (200 + 100 + 200) / 3 = 166.67
    assert result.meta['average'] == 167
    assert result.score == 167
    assert result.meta['attempts'][2]['elapsed_sec'] == 180
    assert score_passwords(attempts, total_elapsed_sec=150).score == 161


def test_passwords_requires_an_attempt():
    with pytest.raises(ValueError):
        score_passwords([], 10)


def test_drones_points_per_correct():
    assert score_drones(10).score == 80
    assert score_drones(25).score == 200
    assert score_drones(40).score == 200


def test_control_key_only_for_perfect_run():
    perfect = score_control(12, 0, 60, level_points=170, lives_left=3)
    # 30s under the 90s target -> 10 steps of 2
    assert perfect.meta['time_bonus_points'] == 20
    assert perfect.score == 190
    assert perfect.earns_key

    shaky = score_control(12, 2, 60, level_points=170, lives_left=1)
    assert shaky.score == 170
    assert not shaky.earns_key


def test_score_station_dispatch_and_validation():
    assert score_station('drones', {'correct': 5}, 0).score == 40
    with pytest.raises(ValueError):
        score_station('drones', {}, 0)
    with pytest.raises(ValueError):
        score_station('master_reset', {}, 0)
    with pytest.raises(ValueError):
        score_station('passwords', {'attempts': 'nope'}, 0)


def test_out_of_range_signals():
    # counts far beyond any game are capped, infinity is rejected
    assert score_station('phishing', {'correct': 10 ** 400}, 0).score == 200
    assert score_station('drones', {'correct': 10 ** 12}, 0).score == 200
    with pytest.raises(ValueError):
        score_station('drones', {'correct': float('inf')}, 0)
    with pytest.raises(ValueError):
        score_station('passwords', {'attempts': [5]}, 0)
