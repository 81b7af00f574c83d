import pytest

from portfolio_server.app import create_app

ADMIN_USERNAME = 'admin'
ADMIN_PASSWORD = 'correct-horse'
ADMIN_EMAIL = 'admin@example.com'
SECRET = 'test-secret'


class FakeSMTP:
    """Stands in for smtplib.SMTP and records sent messages"""

    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append(message)


@pytest.fixture
def make_app(tmp_path):
    def factory(**overrides):
        config = {
            'TESTING': True,
            'DATA_DIR': str(tmp_path / 'data'),
            'UPLOAD_DIR': str(tmp_path / 'uploads'),
            'SECRET_KEY': SECRET,
            'RATELIMIT_ENABLED': False,
            'ADMIN_USERNAME': ADMIN_USERNAME,
            'ADMIN_PASSWORD': ADMIN_PASSWORD,
            'ADMIN_EMAIL': ADMIN_EMAIL,
            'SMTP_HOST': None,
            'NOTIFY_EMAIL': None,
        }
        config.update(overrides)
        return create_app(config)
    return factory


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
    response = client.post('/api/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['token']


@pytest.fixture
def auth_headers(client):
    return {'Authorization': f'Bearer {login(client)}'}


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr('portfolio_server.mailer.smtplib.SMTP', FakeSMTP)
    return FakeSMTP
