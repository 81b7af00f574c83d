import pytest

from portfolio_server.extensions import limiter

MESSAGE = {
    'name': 'Ada',
    'email': 'ada@example.com',
    'company': 'Analytical Engines',
    'projectType': 'web',
    'message': 'Can you build me a site?',
}


def send(client, path='/api/contact', **fields):
    return client.post(path, json={**MESSAGE, **fields})


def test_contact_stores_unread_message(client, auth_headers):
    response = send(client)
    assert response.status_code == 201
    message_id = response.get_json()['id']

    messages = client.get('/api/messages', headers=auth_headers).get_json()
    assert len(messages) == 1
    assert messages[0]['id'] == message_id
    assert messages[0]['read'] is False
    assert messages[0]['company'] == 'Analytical Engines'


def test_messages_endpoint_accepts_public_posts(client, auth_headers):
    assert send(client, '/api/messages').status_code == 201
    assert len(client.get('/api/messages', headers=auth_headers).get_json()) == 1


def test_contact_drops_unknown_fields(client, auth_headers):
    send(client, read=True, id='forged', admin=True)
    message = client.get('/api/messages', headers=auth_headers).get_json()[0]
    assert message['read'] is False
    assert message['id'] != 'forged'
    assert 'admin' not in message


@pytest.mark.parametrize('field', ['name', 'email', 'message'])
def test_contact_requires_fields(client, field):
    response = send(client, **{field: ''})
    assert response.status_code == 400


def test_contact_rejects_invalid_email(client):
    assert send(client, email='not-an-email').status_code == 400


def test_contact_increments_message_count(client, auth_headers):
    send(client)
    send(client)
    assert client.get('/api/stats', headers=auth_headers).get_json()['messageCount'] == 2


def test_contact_forwards_email_to_owner(make_app, fake_smtp):
    app = make_app(SMTP_HOST='smtp.test', MAIL_FROM='site@example.com', NOTIFY_EMAIL='owner@example.com')
    response = send(app.test_client())
    assert response.status_code == 201

    assert len(fake_smtp.sent) == 1
    email = fake_smtp.sent[0]
    assert email['To'] == 'owner@example.com'
    assert email['Reply-To'] == 'ada@example.com'
    assert 'Can you build me a site?' in email.get_content()


def test_email_failure_keeps_the_message(make_app, monkeypatch):
    def broken_smtp(*args, **kwargs):
        raise OSError('connection refused')

    monkeypatch.setattr('portfolio_server.mailer.smtplib.SMTP', broken_smtp)
    app = make_app(SMTP_HOST='smtp.test', MAIL_FROM='site@example.com', NOTIFY_EMAIL='owner@example.com')
    client = app.test_client()

    assert send(client).status_code == 201
    assert len(app.extensions['portfolio'].messages.list()) == 1


def test_inbox_requires_token(client):
    assert client.get('/api/messages').status_code == 401
    assert client.get('/api/messages/unread-count').status_code == 401
    assert client.put('/api/messages/1/read').status_code == 401
    assert client.delete('/api/messages/1').status_code == 401


def test_mark_read_and_unread_count(client, auth_headers):
    first = send(client).get_json()['id']
    send(client)

    assert client.get('/api/messages/unread-count', headers=auth_headers).get_json() == {'count': 2}

    response = client.put(f'/api/messages/{first}/read', headers=auth_headers)
    assert response.status_code == 200
    assert response.get_json()['read'] is True

    assert client.get('/api/messages/unread-count', headers=auth_headers).get_json() == {'count': 1}
    assert client.get(f'/api/messages/{first}', headers=auth_headers).get_json()['read'] is True


def test_mark_read_missing_message(client, auth_headers):
    assert client.put('/api/messages/404/read', headers=auth_headers).status_code == 404


def test_delete_message(client, auth_headers):
    message_id = send(client).get_json()['id']

    assert client.delete(f'/api/messages/{message_id}', headers=auth_headers).status_code == 200
    assert client.get(f'/api/messages/{message_id}', headers=auth_headers).status_code == 404
    assert client.delete(f'/api/messages/{message_id}', headers=auth_headers).status_code == 404


def test_contact_is_rate_limited(make_app):
    app = make_app(RATELIMIT_ENABLED=True, CONTACT_RATE_LIMIT='2 per minute')
    limiter.reset()
    client = app.test_client()

    assert send(client).status_code == 201
    assert send(client).status_code == 201
    response = send(client)
    assert response.status_code == 429
    assert response.get_json()['success'] is False


def test_broken_counter_does_not_fail_the_submission(app, client, auth_headers):
    store = app.extensions['portfolio'].store
    store.save('stats', {'messageCount': None})

    response = send(client)
    assert response.status_code == 201
    assert len(client.get('/api/messages', headers=auth_headers).get_json()) == 1
    assert client.get('/api/stats', headers=auth_headers).get_json()['messageCount'] == 1


def test_counter_failure_is_logged_not_returned(app, client, auth_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise OSError('disk full')

    monkeypatch.setattr(app.extensions['portfolio'].stats, 'record_message', broken)

    response = send(client)
    assert response.status_code == 201
    assert len(client.get('/api/messages', headers=auth_headers).get_json()) == 1
