from sqlalchemy.exc import OperationalError

from escaperoom.services.engine import ledger, timers


def _start(client, team='Orion', run_id=None):
    body = {'team_name': team}
    if run_id:
        body['run_id'] = run_id
    res = client.post('/api/runs', json=body)
    assert res.status_code == 201
    return res.get_json()['session']


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_stations_catalog(client):
    data = client.get('/api/stations').get_json()
    keys = [s['station_key'] for s in data['stations']]
    assert keys == ['phishing', 'passwords', 'firewall', 'drones', 'control', 'master_reset']
    assert data['max_total'] == 1100


def test_tiers_endpoint(client):
    data = client.get('/api/tiers').get_json()
    assert [t['short_label'] for t in data['tiers']] == ['Elite', 'Expert', 'Apprentice', 'At risk']


def test_start_session_requires_team(client):
    assert client.post('/api/runs', json={}).status_code == 400


def test_start_session_resumes_own_run_only(client):
    first = _start(client, 'Orion')
    again = _start(client, 'Orion', run_id=first['run_id'])
    assert again['run_id'] == first['run_id']
    other = _start(client, 'Vega', run_id=first['run_id'])
    assert other['run_id'] != first['run_id']
    assert other['team_name'] == 'Vega'


def test_in_person_result_issues_fragment(client):
    sess = _start(client)
    res = client.post(f"/api/runs/{sess['run_id']}/stations/phishing/results",
                      json={'team_name': sess['team_name'], 'score': 500, 'mode': 'in_person'})
    assert res.status_code == 201
    data = res.get_json()
    assert data['score'] == 200
    assert data['mode'] == 'in_person'
    assert len(data['key_part']) == 4
    assert data['meta']['team_name'] == 'Orion'


def test_result_before_run_exists_is_recovered(client):
    res = client.post('/api/runs/brand-new/stations/firewall/results',
                      json={'team_name': 'Lyra', 'score': 120, 'mode': 'web'})
    assert res.status_code == 201
    progress = client.get('/api/runs/brand-new').get_json()
    assert progress['run']['team_name'] == 'Lyra'
    assert progress['total_score'] == 120


def test_result_validation_errors(client):
    sess = _start(client)
    base = f"/api/runs/{sess['run_id']}/stations"
    assert client.post(f'{base}/phishing/results', json={'mode': 'web'}).status_code == 400
    assert client.post(f'{base}/phishing/results', json={'score': 1, 'mode': 'fax'}).status_code == 400
    assert client.post(f'{base}/phishing/results', json={'score': 1, 'meta': [1]}).status_code == 400
    assert client.post(f'{base}/kitchen/results', json={'score': 1}).status_code == 404
    assert client.post(f'{base}/master_reset/results', json={'score': 1}).status_code == 400


def test_best_of_keeps_higher_score(client):
    sess = _start(client)
    url = f"/api/runs/{sess['run_id']}/stations/drones/results"
    client.post(url, json={'score': 150, 'best_of': True})
    data = client.post(url, json={'score': 90, 'best_of': True}).get_json()
    assert data['score'] == 150


def test_play_uses_server_timer_when_client_sends_none(client, monkeypatch):
    sess = _start(client)
    base = f"/api/runs/{sess['run_id']}/stations/phishing"
    assert client.post(f'{base}/start').status_code == 200
    monkeypatch.setattr(timers.AttemptTimer, 'elapsed_sec', lambda self: 215)
    res = client.post(f'{base}/play', json={'signals': {'correct': 10, 'mistakes': 0}})
    assert res.status_code == 201
    data = res.get_json()
    assert data['meta']['elapsed_sec'] == 215
    assert data['score'] == 194
    assert data['earned_key'] is True
    assert timers.elapsed_for(sess['run_id'], 'phishing') is None


def test_play_control_without_perfect_run_has_no_fragment(client):
    sess = _start(client)
    res = client.post(f"/api/runs/{sess['run_id']}/stations/control/play", json={
        'elapsed_sec': 60,
        'signals': {'levels_completed': 8, 'mistakes': 1, 'level_points': 120, 'lives_left': 2},
    })
    data = res.get_json()
    assert res.status_code == 201
    assert data['earned_key'] is False
    assert data['key_part'] is None


def test_full_game_flow(client):
    sess = _start(client, 'Comets')
    run_id = sess['run_id']
    parts = []
    for key in ('phishing', 'passwords', 'firewall', 'drones'):
        data = client.post(f'/api/runs/{run_id}/stations/{key}/results',
                           json={'team_name': 'Comets', 'score': 200}).get_json()
        parts.append(data['key_part'])

    progress = client.get(f'/api/runs/{run_id}').get_json()
    assert sorted(progress['key_parts']) == sorted(parts)
    assert progress['total_score'] == 800
    assert progress['energy_pct'] == 73
    assert not progress['has_master']

    status = client.get(f'/api/runs/{run_id}/master-key').get_json()
    assert status['expected_count'] == 4

    wrong = client.post(f'/api/runs/{run_id}/master-key', json={'parts': parts[:3], 'elapsed_sec': 30})
    assert wrong.status_code == 200
    assert wrong.get_json()['ok'] is False

    entered = [p.lower() for p in reversed(parts)]
    ok = client.post(f'/api/runs/{run_id}/master-key', json={'parts': entered, 'elapsed_sec': 30}).get_json()
    assert ok['ok'] is True
    assert ok['bonus'] == 100
    assert ok['tier']['short_label'] == 'Expert'

    board = client.get('/api/leaderboard').get_json()['entries']
    assert board[0]['team_name'] == 'Comets'
    assert board[0]['total_score'] == 900
    assert board[0]['stations_done'] == 4
    assert board[0]['has_master'] is True


def test_master_key_requires_list(client):
    sess = _start(client)
    assert client.post(f"/api/runs/{sess['run_id']}/master-key", json={'parts': 'AB12'}).status_code == 400


def test_leaderboard_search(client):
    for team, score in (('Orion', 50), ('Vega', 200), ('Lyra', 120)):
        sess = _start(client, team)
        client.post(f"/api/runs/{sess['run_id']}/stations/phishing/results", json={'score': score})
    entries = client.get('/api/leaderboard?q=or').get_json()['entries']
    assert [(e['team_name'], e['rank']) for e in entries] == [('Orion', 3)]
    assert [e['total_score'] for e in client.get('/api/leaderboard').get_json()['entries']] == [200, 120, 50]


def test_oversized_numbers_are_clamped_or_rejected(client):
    sess = _start(client)
    base = f"/api/runs/{sess['run_id']}/stations"
    res = client.post(f'{base}/phishing/results', json={'score': 10 ** 400})
    assert res.status_code == 201
    assert res.get_json()['score'] == 200
    res = client.post(f'{base}/drones/play', data='{"signals": {"correct": 1e400}}',
                      content_type='application/json')
    assert res.status_code == 400
    res = client.post(f'{base}/passwords/play', json={'signals': {'attempts': [5]}})
    assert res.status_code == 400


def test_store_error_returns_503_and_recovers(client, monkeypatch):
    sess = _start(client)
    url = f"/api/runs/{sess['run_id']}/stations/drones/results"

    def broken(values, keep_best):
        raise OperationalError('INSERT INTO station_result', {}, Exception('database is locked'))

    with monkeypatch.context() as m:
        m.setattr(ledger, '_upsert', broken)
        res = client.post(url, json={'score': 80})
    assert res.status_code == 503
    assert 'database is locked' in res.get_json()['error']

    res = client.post(url, json={'score': 80})
    assert res.status_code == 201
    assert res.get_json()['score'] == 80
