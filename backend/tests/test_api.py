def test_index_and_health(client):
    assert client.get('/').status_code == 200
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['questions'] >= 25


def test_upsert_creates_and_max_merges(client):
    res = client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 50, 'best_streak': 3})
    assert res.status_code == 200
    body = res.get_json()
    assert body['ok'] is True
    assert body['record']['best_score'] == 50

    # A worse result never lowers the stored best
    res = client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 30, 'best_streak': 2})
    record = res.get_json()['record']
    assert (record['best_score'], record['best_streak']) == (50, 3)

    res = client.get('/api/leaderboard/records/ana')
    assert res.status_code == 200
    assert res.get_json()['best_streak'] == 3


def test_upsert_accepts_legacy_field_names(client):
    res = client.post('/api/leaderboard/upsert', json={'name': 'bo', 'bestPoints': 40, 'bestStreak': 4})
    assert res.status_code == 200
    record = res.get_json()['record']
    assert (record['user_id'], record['best_score'], record['best_streak']) == ('bo', 40, 4)


def test_upsert_validation(client):
    assert client.post('/api/leaderboard/upsert', json={'best_score': 10}).status_code == 400
    assert client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': -1}).status_code == 400
    assert client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_streak': 'lots'}).status_code == 400
    assert client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': True}).status_code == 400
    assert client.post('/api/leaderboard/upsert', json={'user_id': 'x' * 65}).status_code == 400
    assert client.get('/api/leaderboard/upsert').status_code == 405


def test_unknown_record_is_404(client):
    res = client.get('/api/leaderboard/records/nobody')
    assert res.status_code == 404
    assert 'error' in res.get_json()


def test_leaderboard_orders_and_limits(client):
    for user, score, streak in [('ana', 50, 3), ('bo', 50, 7), ('cy', 90, 1), ('di', 10, 2)]:
        client.post('/api/leaderboard/upsert', json={'user_id': user, 'best_score': score, 'best_streak': streak})

    board = client.get('/api/leaderboard').get_json()
    assert [r['user_id'] for r in board['by_score']] == ['cy', 'ana', 'bo', 'di']
    assert [r['user_id'] for r in board['by_streak']] == ['bo', 'ana', 'di', 'cy']

    board = client.get('/api/leaderboard?limit=2').get_json()
    assert board['limit'] == 2
    assert len(board['by_score']) == 2

    # Out-of-range and junk limits are clamped / defaulted
    assert client.get('/api/leaderboard?limit=0').get_json()['limit'] == 1
    assert client.get('/api/leaderboard?limit=1000').get_json()['limit'] == 50
    assert client.get('/api/leaderboard?limit=abc').get_json()['limit'] == 10


def test_empty_leaderboard(client):
    board = client.get('/api/leaderboard').get_json()
    assert board['by_score'] == [] and board['by_streak'] == []


def test_check_questions_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['check-questions'])
    assert result.exit_code == 0
    assert '0 problem(s) found' in result.output


def test_leaderboard_command(flask_app, client):
    client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 50, 'best_streak': 3})
    result = flask_app.test_cli_runner().invoke(args=['leaderboard', '--limit', '5'])
    assert result.exit_code == 0
    assert 'ana' in result.output


def test_upsert_rejects_values_beyond_column_range(client):
    res = client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 10 ** 20, 'best_streak': 1})
    assert res.status_code == 400
    res = client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 1, 'best_streak': 2 ** 31})
    assert res.status_code == 400
    # The largest storable value is accepted
    res = client.post('/api/leaderboard/upsert', json={'user_id': 'ana', 'best_score': 2 ** 31 - 1})
    assert res.status_code == 200
    assert res.get_json()['record']['best_score'] == 2 ** 31 - 1
    assert client.get('/api/leaderboard/records/ana').get_json()['best_score'] == 2 ** 31 - 1
