"""
Portfolio Server application factory
"""

import secrets
import logging

import click
from flask import Flask, jsonify, send_from_directory, current_app
from werkzeug.exceptions import HTTPException

from .api import api
from .config import load_config
from .errors import PortfolioError
from .extensions import cors, limiter, Portfolio
from .mailer import Mailer
from .resources import build_managers, AboutManager
from .stats import StatsManager
from .store import JsonStore
from .uploads import UploadManager
from .users import UserManager

logger = logging.getLogger(__name__)


def cors_origins(value):
    if not value or value == '*':
        return '*'
    if isinstance(value, str):
        return [origin.strip() for origin in value.split(',') if origin.strip()]
    return list(value)


def create_app(overrides=None):
    """Build the Flask app; overrides are applied on top of file and env config"""
    app = Flask(__name__)
    app.config.update(load_config(overrides))

    if not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = secrets.token_hex(32)
        logger.warning('PORTFOLIO_SECRET_KEY is not set; using a random key, tokens will not survive a restart')

    cors.init_app(app, resources={r'/api/*': {'origins': cors_origins(app.config['CORS_ORIGINS'])}})
    limiter.init_app(app)

    store = JsonStore(app.config['DATA_DIR'])
    store.ensure_ready()
    uploads = UploadManager(app.config['UPLOAD_DIR'])
    users = UserManager(store, uploads)

    app.extensions['portfolio'] = Portfolio(
        store=store,
        uploads=uploads,
        managers=build_managers(store, uploads),
        users=users,
        stats=StatsManager(store),
        about=AboutManager(store),
        mailer=Mailer(app.config),
    )

    users.ensure_admin(
        app.config.get('ADMIN_USERNAME'),
        app.config.get('ADMIN_PASSWORD'),
        app.config.get('ADMIN_EMAIL'),
    )

    app.register_blueprint(api)
    app.add_url_rule('/uploads/<path:filename>', 'uploads', serve_upload)
    register_error_handlers(app)
    register_commands(app)

    logger.info(f"Data directory: {store.data_dir}")
    return app


def serve_upload(filename):
    return send_from_directory(current_app.config['UPLOAD_DIR'], filename)


def register_error_handlers(app):
    @app.errorhandler(PortfolioError)
    def handle_portfolio_error(e):
        return jsonify({'success': False, 'error': e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code is None or e.code < 400:
            # routing redirects
            return e
        message = e.description
        if e.code == 429:
            message = f'Too many requests: {e.description}'
        elif e.code == 413:
            message = 'Upload too large'
        return jsonify({'success': False, 'error': message}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {e}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


def register_commands(app):
    @app.cli.command('create-admin')
    @click.option('--username', prompt=True)
    @click.option('--email', default=None)
    @click.password_option()
    def create_admin(username, email, password):
        """Create an admin account in users.json"""
        users = app.extensions['portfolio'].users
        try:
            users.create(username, password, email)
        except PortfolioError as e:
            raise click.ClickException(e.message)
        click.echo(f"Created admin account '{username}'")
