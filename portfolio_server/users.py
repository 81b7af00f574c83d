"""
User accounts stored in users.json
"""

import logging

from werkzeug.security import generate_password_hash, check_password_hash

from .errors import ValidationError, NotFoundError
from .resources import now_iso, same_id
from .uploads import is_data_url

logger = logging.getLogger(__name__)

THEMES = ('dark', 'light', 'winter')
DEFAULT_SETTINGS = {'theme': 'dark', 'cursor': 'default'}
MIN_PASSWORD_LENGTH = 8


def public_user(user):
    """User record without the password hash"""
    return {k: v for k, v in user.items() if k != 'password'}


def validate_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class UserManager:
    def __init__(self, store, uploads):
        self.store = store
        self.uploads = uploads

    def all(self):
        return self.store.load('users')

    def get(self, user_id):
        return next((u for u in self.all() if same_id(u, user_id)), None)

    def find_by_username(self, username):
        return next((u for u in self.all() if u.get('username') == username), None)

    def find_by_email(self, email):
        email = (email or '').strip().lower()
        if not email:
            return None
        return next((u for u in self.all() if (u.get('email') or '').lower() == email), None)

    def authenticate(self, username, password):
        """Match username (or email) and password; None on failure"""
        user = self.find_by_username(username) or self.find_by_email(username)
        if user and check_password_hash(user.get('password', ''), password):
            return user
        return None

    def create(self, username, password, email=None):
        if not username:
            raise ValidationError('Username required')
        validate_password(password)
        timestamp = now_iso()
        record = {
            'id': self.store.next_id(),
            'username': username,
            'email': email,
            'password': generate_password_hash(password),
            'settings': dict(DEFAULT_SETTINGS),
            'avatar': None,
            'createdAt': timestamp,
            'updatedAt': timestamp,
        }

        def append(users):
            if any(u.get('username') == username for u in users):
                raise ValidationError('Username already taken')
            users.append(record)
            return record

        self.store.update('users', append)
        logger.info(f"Created user {username}")
        return record

    def ensure_admin(self, username, password, email=None):
        """Seed the first account when users.json is empty"""
        if not username or not password:
            return None
        if self.all():
            return None
        user = self.create(username, password, email)
        logger.info(f"Seeded admin account '{username}'")
        return user

    def _modify(self, user_id, fn):
        def apply(users):
            for user in users:
                if same_id(user, user_id):
                    fn(user, users)
                    user['updatedAt'] = now_iso()
                    return dict(user)
            raise NotFoundError('User not found')

        return self.store.update('users', apply)

    def update_settings(self, user_id, data, avatar_file=None):
        """Profile form: username, email, settings/theme/cursor, password, avatar"""
        data = dict(data or {})

        settings = data.get('settings')
        if settings is not None and not isinstance(settings, dict):
            raise ValidationError('Settings must be an object')
        settings = dict(settings or {})
        for key in ('theme', 'cursor'):
            if data.get(key):
                settings[key] = data[key]
        if 'theme' in settings and settings['theme'] not in THEMES:
            raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}")

        password = data.get('password')
        if password:
            validate_password(password)

        avatar_url = None
        if avatar_file is not None and avatar_file.filename:
            avatar_url = self.uploads.save_file(avatar_file, 'avatars')
        elif is_data_url(data.get('avatar')):
            avatar_url = self.uploads.save_data_url(data['avatar'], 'avatars')

        previous_avatar = {}

        def apply(user, users):
            username = data.get('username')
            if username and username != user.get('username'):
                if any(u.get('username') == username for u in users if u is not user):
                    raise ValidationError('Username already taken')
                user['username'] = username
            if data.get('email'):
                user['email'] = data['email']
            user['settings'] = {**DEFAULT_SETTINGS, **(user.get('settings') or {}), **settings}
            if password:
                user['password'] = generate_password_hash(password)
            if avatar_url:
                previous_avatar['url'] = user.get('avatar')
                user['avatar'] = avatar_url

        try:
            user = self._modify(user_id, apply)
        except Exception:
            if avatar_url:
                self.uploads.delete(avatar_url)
            raise

        if previous_avatar.get('url'):
            self.uploads.delete(previous_avatar['url'])
        return user

    def set_theme(self, user_id, theme):
        if theme not in THEMES:
            raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}")

        def apply(user, users):
            user['settings'] = {**DEFAULT_SETTINGS, **(user.get('settings') or {}), 'theme': theme}

        return self._modify(user_id, apply)

    def set_password(self, user_id, password):
        validate_password(password)

        def apply(user, users):
            user['password'] = generate_password_hash(password)

        return self._modify(user_id, apply)
