def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'MetaChess' in res.get_json()['message']


def test_health(client):
    res = client.get('/health')
    data = res.get_json()
    assert data['status'] == 'ok'
    assert data['sessions'] == 0


def test_unknown_game(client):
    res = client.get('/api/games/does-not-exist')
    assert res.status_code == 404
    assert res.get_json()['exists'] is False


def test_game_summary_hides_cards(flask_app, client):
    coordinator = flask_app.extensions['metachess']
    session = coordinator.registry.create('alice', 'sid-1', now=coordinator.now())

    res = client.get(f'/api/games/{session.id}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['exists'] is True
    assert data['phase'] == 'waiting'
    players = data['players']
    assert players[session.creator_color.value] == {'joined': True, 'connected': True, 'deck': 66, 'hand': 5}
    assert players[session.creator_color.opposite.value]['joined'] is False
    assert all(isinstance(p['hand'], int) for p in players.values())
    assert 'whiteHand' not in data and 'blackHand' not in data

    stats = client.get('/api/games').get_json()
    assert stats['sessions'] == 1
    assert stats['byPhase']['waiting'] == 1
