"""
Authentication gate
Bearer JWTs signed with the configured secret
"""

import hashlib
import logging
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app, request, g

from .errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
RESET_PURPOSE = 'password-reset'


def extract_bearer_token(req):
    auth_header = req.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header[len('Bearer '):].strip()
        return token or None
    return None


def issue_token(user_id, secret, ttl_hours=24):
    """Signed session token for the admin dashboard"""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'iat': now,
        'exp': now + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token, secret):
    """Verify signature and expiry; raises InvalidTokenError"""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected token: {e}")
        raise InvalidTokenError('Invalid or expired token')

    if payload.get('purpose'):
        # reset tokens must not open a session
        raise InvalidTokenError('Invalid or expired token')
    return payload


def password_fingerprint(password_hash):
    return hashlib.sha256(str(password_hash).encode('utf-8')).hexdigest()[:16]


def issue_reset_token(user, secret, ttl_minutes=30):
    """Short-lived token bound to the current password hash, so it works once"""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user['id']),
        'purpose': RESET_PURPOSE,
        'pwf': password_fingerprint(user.get('password')),
        'iat': now,
        'exp': now + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_reset_token(token, secret):
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if payload.get('purpose') != RESET_PURPOSE:
        return None
    return payload


def authenticate_request():
    """Resolve the bearer token of the current request to a stored user"""
    token = extract_bearer_token(request)
    if token is None:
        raise AuthenticationError('Authentication required')

    payload = decode_token(token, current_app.config['SECRET_KEY'])
    users = current_app.extensions['portfolio'].users
    user = users.get(payload.get('sub'))
    if user is None:
        logger.warning(f"Token for unknown user {payload.get('sub')}")
        raise InvalidTokenError('Invalid or expired token')
    return user


def login_required(function):
    """Reject the request unless it carries a valid bearer token"""
    @wraps(function)
    def wrapper(*args, **kwargs):
        g.user = authenticate_request()
        return function(*args, **kwargs)
    return wrapper
