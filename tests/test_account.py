import io
import re

from conftest import ADMIN_USERNAME, ADMIN_PASSWORD, ADMIN_EMAIL, login


def reset_link_token(message):
    match = re.search(r'token=([\w\-\.]+)', message.get_content())
    assert match, message.get_content()
    return match.group(1)


def test_get_settings_hides_password(client, auth_headers):
    response = client.get('/api/user/settings', headers=auth_headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body['username'] == ADMIN_USERNAME
    assert body['settings']['theme'] == 'dark'
    assert 'password' not in body


def test_settings_require_token(client):
    assert client.get('/api/user/settings').status_code == 401
    assert client.put('/api/user/settings', json={}).status_code == 401
    assert client.put('/api/user/theme', json={'theme': 'light'}).status_code == 401


def test_update_settings_merges_preferences(client, auth_headers):
    response = client.put(
        '/api/user/settings',
        json={'email': 'new@example.com', 'settings': {'cursor': 'pointer'}},
        headers=auth_headers,
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body['email'] == 'new@example.com'
    assert body['settings'] == {'theme': 'dark', 'cursor': 'pointer'}
    assert 'password' not in body


def test_update_settings_rejects_unknown_theme(client, auth_headers):
    response = client.put('/api/user/settings', json={'theme': 'neon'}, headers=auth_headers)
    assert response.status_code == 400


def test_profile_form_with_avatar(app, client, auth_headers):
    response = client.put(
        '/api/user/settings',
        data={'theme': 'winter', 'avatar': (io.BytesIO(b'jpeg-bytes'), 'me.jpg')},
        headers=auth_headers,
        content_type='multipart/form-data',
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body['settings']['theme'] == 'winter'
    assert body['avatar'].startswith('/uploads/avatars/')
    assert client.get(body['avatar']).data == b'jpeg-bytes'


def test_password_change_through_settings(client, auth_headers):
    response = client.put('/api/user/settings', json={'password': 'brand-new-pass'}, headers=auth_headers)
    assert response.status_code == 200

    assert client.post('/api/login', json={'username': ADMIN_USERNAME, 'password': ADMIN_PASSWORD}).status_code == 401
    login(client, password='brand-new-pass')


def test_short_password_is_rejected(client, auth_headers):
    response = client.put('/api/user/settings', json={'password': 'short'}, headers=auth_headers)
    assert response.status_code == 400


def test_theme_endpoint(client, auth_headers):
    response = client.put('/api/user/theme', json={'theme': 'light'}, headers=auth_headers)
    assert response.status_code == 200
    assert response.get_json()['theme'] == 'light'
    assert client.get('/api/user/settings', headers=auth_headers).get_json()['settings']['theme'] == 'light'

    assert client.put('/api/user/theme', json={'theme': 'neon'}, headers=auth_headers).status_code == 400


def test_password_reset_flow(make_app, fake_smtp):
    app = make_app(SMTP_HOST='smtp.test', MAIL_FROM='site@example.com', PUBLIC_URL='https://me.dev')
    client = app.test_client()

    response = client.post('/api/auth/request-password-reset', json={'email': ADMIN_EMAIL})
    assert response.status_code == 200
    assert len(fake_smtp.sent) == 1
    assert fake_smtp.sent[0]['To'] == ADMIN_EMAIL
    assert 'https://me.dev/reset-password?token=' in fake_smtp.sent[0].get_content()
    token = reset_link_token(fake_smtp.sent[0])

    response = client.post('/api/auth/reset-password', json={'token': token, 'password': 'reset-password-1'})
    assert response.status_code == 200
    login(client, password='reset-password-1')

    # the link stops working once the password has changed
    response = client.post('/api/auth/reset-password', json={'token': token, 'password': 'another-password'})
    assert response.status_code == 400


def test_reset_request_for_unknown_email_looks_the_same(make_app, fake_smtp):
    app = make_app(SMTP_HOST='smtp.test', MAIL_FROM='site@example.com')
    response = app.test_client().post('/api/auth/request-password-reset', json={'email': 'nobody@example.com'})
    assert response.status_code == 200
    assert response.get_json()['success'] is True
    assert fake_smtp.sent == []


def test_reset_with_session_token_fails(client):
    token = login(client)
    response = client.post('/api/auth/reset-password', json={'token': token, 'password': 'whatever-pass'})
    assert response.status_code == 400


def test_create_admin_command(make_app):
    app = make_app(ADMIN_USERNAME=None, ADMIN_PASSWORD=None)
    assert app.extensions['portfolio'].users.all() == []

    runner = app.test_cli_runner()
    result = runner.invoke(args=['create-admin', '--username', 'owner', '--password', 'owner-password'])
    assert result.exit_code == 0, result.output
    assert 'owner' in result.output

    login(app.test_client(), username='owner', password='owner-password')
