"""
Portfolio REST API
Content CRUD, inbox, account and analytics routes under /api
"""

import json
import logging

from flask import Blueprint, current_app, jsonify, request, g

from . import __version__
from .auth import login_required, issue_token, issue_reset_token, decode_reset_token, password_fingerprint
from .errors import PortfolioError, ValidationError, AuthenticationError
from .extensions import limiter
from .resources import etag_for
from .users import public_user

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')

CONTENT = 'any(projects, education, skills)'


def portfolio():
    return current_app.extensions['portfolio']


def contact_limit():
    return current_app.config['CONTACT_RATE_LIMIT']


def login_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


def error_response(message, status_code):
    return jsonify({
        'success': False,
        'error': message
    }), status_code


def request_data():
    """JSON body, or form fields for multipart submissions"""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return data
    # repeated fields (technologies=a&technologies=b) stay lists
    data = {
        key: values[0] if len(values) == 1 else values
        for key, values in request.form.to_dict(flat=False).items()
    }
    if isinstance(data.get('settings'), str):
        try:
            data['settings'] = json.loads(data['settings'])
        except ValueError:
            raise ValidationError('Settings must be an object')
    return data


def with_etag(record, status_code=200):
    response = jsonify(record)
    response.status_code = status_code
    response.headers['ETag'] = etag_for(record)
    return response


# Health

@api.route('/status')
def api_status():
    """Health check endpoint"""
    return jsonify({
        'status': 'ok',
        'message': 'Portfolio server is running',
        'version': __version__,
        'data_dir': str(portfolio().store.data_dir)
    })


# Content: projects, education, skills

@api.route(f'/<{CONTENT}:resource>')
def api_list(resource):
    """List a content collection"""
    try:
        return jsonify(portfolio().managers[resource].list())
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error listing {resource}: {e}")
        return error_response(f'Failed to load {resource}', 500)


@api.route(f'/<{CONTENT}:resource>/<item_id>')
def api_get(resource, item_id):
    """Get a single content record"""
    try:
        return with_etag(portfolio().managers[resource].get(item_id))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error getting {resource} {item_id}: {e}")
        return error_response(f'Failed to load {resource}', 500)


@api.route(f'/<{CONTENT}:resource>', methods=['POST'])
@login_required
def api_create(resource):
    """Create a content record"""
    try:
        manager = portfolio().managers[resource]
        data = request_data()
        if resource == 'projects':
            record = manager.create(data, image_file=request.files.get('image'))
        else:
            record = manager.create(data)
        return with_etag(record, 201)
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error creating {resource}: {e}")
        return error_response(f'Failed to create {resource}', 500)


@api.route(f'/<{CONTENT}:resource>/<item_id>', methods=['PUT'])
@login_required
def api_update(resource, item_id):
    """Partially update a content record"""
    try:
        manager = portfolio().managers[resource]
        data = request_data()
        if_match = request.headers.get('If-Match')
        if resource == 'projects':
            record, _ = manager.update(item_id, data, if_match, image_file=request.files.get('image'))
        else:
            record, _ = manager.update(item_id, data, if_match)
        return with_etag(record)
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error updating {resource} {item_id}: {e}")
        return error_response(f'Failed to update {resource}', 500)


@api.route(f'/<{CONTENT}:resource>/<item_id>', methods=['DELETE'])
@login_required
def api_delete(resource, item_id):
    """Delete a content record"""
    try:
        manager = portfolio().managers[resource]
        manager.delete(item_id)
        return jsonify({
            'success': True,
            'message': f'{manager.label} deleted successfully'
        })
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error deleting {resource} {item_id}: {e}")
        return error_response(f'Failed to delete {resource}', 500)


@api.route('/about')
def api_get_about():
    """Public about-me section"""
    try:
        return jsonify(portfolio().about.get())
    except Exception as e:
        logger.error(f"Error reading about: {e}")
        return error_response('Failed to load about', 500)


@api.route('/about', methods=['PUT'])
@login_required
def api_update_about():
    """Update the about-me section"""
    try:
        return jsonify(portfolio().about.update(request_data()))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error updating about: {e}")
        return error_response('Failed to update about', 500)


# Contact form and inbox

@api.route('/contact', methods=['POST'])
@api.route('/messages', methods=['POST'])
@limiter.limit(contact_limit)
def api_contact():
    """Store a contact form submission and forward it by email"""
    try:
        services = portfolio()
        message = services.messages.create(request_data())
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error saving message: {e}")
        return error_response('Failed to save message', 500)

    # the stored message stays even when the counter or notification fails
    try:
        services.stats.record_message()
    except Exception as e:
        logger.error(f"Error counting message {message['id']}: {e}")

    try:
        if not services.mailer.notify_new_message(message):
            logger.warning(f"Notification email for message {message['id']} was not sent")
    except Exception as e:
        logger.error(f"Error sending notification for message {message['id']}: {e}")

    return jsonify({
        'success': True,
        'id': message['id'],
        'message': 'Message sent successfully'
    }), 201


@api.route('/messages')
@login_required
def api_list_messages():
    """Inbox, newest first"""
    try:
        return jsonify(portfolio().messages.list())
    except Exception as e:
        logger.error(f"Error reading messages: {e}")
        return error_response('Failed to read messages', 500)


@api.route('/messages/unread-count')
@login_required
def api_unread_count():
    try:
        return jsonify({'count': portfolio().messages.unread_count()})
    except Exception as e:
        logger.error(f"Error counting unread messages: {e}")
        return error_response('Failed to read messages', 500)


@api.route('/messages/<item_id>')
@login_required
def api_get_message(item_id):
    try:
        return jsonify(portfolio().messages.get(item_id))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error reading message {item_id}: {e}")
        return error_response('Failed to read message', 500)


@api.route('/messages/<item_id>/read', methods=['PUT'])
@login_required
def api_mark_read(item_id):
    try:
        return jsonify(portfolio().messages.mark_read(item_id))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error marking message {item_id} read: {e}")
        return error_response('Failed to update message', 500)


@api.route('/messages/<item_id>', methods=['DELETE'])
@login_required
def api_delete_message(item_id):
    try:
        portfolio().messages.delete(item_id)
        return jsonify({
            'success': True,
            'message': 'Message deleted successfully'
        })
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error deleting message {item_id}: {e}")
        return error_response('Failed to delete message', 500)


# Account

@api.route('/login', methods=['POST'])
@limiter.limit(login_limit)
def api_login():
    """Exchange username and password for a bearer token"""
    try:
        data = request_data()
        username = (data.get('username') or '').strip()
        password = data.get('password') or ''
        if not username or not password:
            raise ValidationError('Username and password required')

        user = portfolio().users.authenticate(username, password)
        if user is None:
            logger.warning(f"Failed login for '{username}' from {request.remote_addr}")
            raise AuthenticationError('Invalid credentials')

        token = issue_token(user['id'], current_app.config['SECRET_KEY'], current_app.config['TOKEN_TTL_HOURS'])
        logger.info(f"Login successful for '{user['username']}'")
        return jsonify({
            'success': True,
            'token': token,
            'user': public_user(user)
        })
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error during login: {e}")
        return error_response('Login failed', 500)


@api.route('/user/settings')
@login_required
def api_get_settings():
    return jsonify(public_user(g.user))


@api.route('/user/settings', methods=['PUT'])
@login_required
def api_update_settings():
    """Update profile, preferences, password and avatar"""
    try:
        user = portfolio().users.update_settings(g.user['id'], request_data(), avatar_file=request.files.get('avatar'))
        return jsonify(public_user(user))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error updating settings: {e}")
        return error_response('Failed to update settings', 500)


@api.route('/user/theme', methods=['PUT'])
@login_required
def api_update_theme():
    try:
        user = portfolio().users.set_theme(g.user['id'], request_data().get('theme'))
        return jsonify(user['settings'])
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error updating theme: {e}")
        return error_response('Failed to update theme', 500)


@api.route('/auth/request-password-reset', methods=['POST'])
@limiter.limit(login_limit)
def api_request_password_reset():
    """Email a reset link; the answer never reveals whether the address exists"""
    try:
        email = (request_data().get('email') or '').strip()
        if not email:
            raise ValidationError('Email required')

        services = portfolio()
        user = services.users.find_by_email(email)
        if user:
            config = current_app.config
            token = issue_reset_token(user, config['SECRET_KEY'], config['RESET_TOKEN_TTL_MINUTES'])
            link = f"{config['PUBLIC_URL'].rstrip('/')}/reset-password?token={token}"
            if not services.mailer.send_password_reset(user['email'], link, config['RESET_TOKEN_TTL_MINUTES']):
                logger.warning(f"Password reset email for '{user['username']}' was not sent")
        else:
            logger.info(f"Password reset requested for unknown email {email}")

        return jsonify({
            'success': True,
            'message': 'If that email is registered, a reset link has been sent'
        })
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error requesting password reset: {e}")
        return error_response('Failed to request password reset', 500)


@api.route('/auth/reset-password', methods=['POST'])
@limiter.limit(login_limit)
def api_reset_password():
    try:
        data = request_data()
        token = data.get('token')
        password = data.get('password')
        if not token or not password:
            raise ValidationError('Token and password required')

        users = portfolio().users
        payload = decode_reset_token(token, current_app.config['SECRET_KEY'])
        user = users.get(payload['sub']) if payload else None
        if user is None or payload.get('pwf') != password_fingerprint(user.get('password')):
            raise ValidationError('Invalid or expired reset token')

        users.set_password(user['id'], password)
        logger.info(f"Password reset for '{user['username']}'")
        return jsonify({
            'success': True,
            'message': 'Password updated successfully'
        })
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error resetting password: {e}")
        return error_response('Failed to reset password', 500)


# Analytics

@api.route('/stats')
@login_required
def api_get_stats():
    try:
        return jsonify(portfolio().stats.get())
    except Exception as e:
        logger.error(f"Error reading stats: {e}")
        return error_response('Failed to read stats', 500)


@api.route('/stats/<counter>', methods=['POST'])
def api_increment_stat(counter):
    """Count a visit, CV view or CV download"""
    try:
        return jsonify(portfolio().stats.increment(counter))
    except PortfolioError as e:
        return error_response(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error updating stats counter {counter}: {e}")
        return error_response('Failed to update stats', 500)
