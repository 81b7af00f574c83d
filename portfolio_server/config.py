"""
Portfolio Server configuration
Defaults, optional YAML file, then PORTFOLIO_* environment variables
"""

import os
import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = 'PORTFOLIO_'

DEFAULTS = {
    'DATA_DIR': os.path.join(os.getcwd(), 'data'),
    'UPLOAD_DIR': None,  # defaults to <DATA_DIR>/uploads
    'HOST': '127.0.0.1',
    'PORT': 5000,
    'SECRET_KEY': None,
    'TOKEN_TTL_HOURS': 24,
    'RESET_TOKEN_TTL_MINUTES': 30,
    'CORS_ORIGINS': '*',
    'CONTACT_RATE_LIMIT': '5 per minute',
    'LOGIN_RATE_LIMIT': '10 per minute',
    'RATELIMIT_ENABLED': True,
    'RATELIMIT_STORAGE_URI': 'memory://',
    'MAX_CONTENT_LENGTH': 5 * 1024 * 1024,
    'SMTP_HOST': None,
    'SMTP_PORT': 587,
    'SMTP_USERNAME': None,
    'SMTP_PASSWORD': None,
    'SMTP_USE_TLS': True,
    'SMTP_USE_SSL': False,
    'MAIL_FROM': None,
    'NOTIFY_EMAIL': None,
    'PUBLIC_URL': 'http://localhost:5000',
    'ADMIN_USERNAME': None,
    'ADMIN_PASSWORD': None,
    'ADMIN_EMAIL': None,
    'LOG_LEVEL': 'INFO',
}

# SMTP settings are commonly exported without the project prefix
UNPREFIXED_KEYS = {'SMTP_HOST', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_PASSWORD', 'SMTP_USE_TLS', 'SMTP_USE_SSL'}

TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def coerce(value, default):
    """Convert a string value to the type of its default"""
    if not isinstance(value, str):
        return value
    if isinstance(default, bool):
        return value.strip().lower() in TRUE_VALUES
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring non-integer config value: {value!r}")
            return default
    return value


def load_yaml_config(path):
    """Read a YAML config file; keys are upper-cased"""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return {}

    try:
        data = yaml.safe_load(config_path.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as e:
        logger.error(f"Could not parse config file {config_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Config file {config_path} must contain a mapping")
        return {}

    return {str(key).upper(): value for key, value in data.items()}


def load_config(overrides=None, environ=None):
    """Build the settings dict used by create_app()"""
    if environ is None:
        load_dotenv()
        environ = os.environ

    config = dict(DEFAULTS)

    config_file = environ.get(f'{ENV_PREFIX}CONFIG')
    if config_file:
        for key, value in load_yaml_config(config_file).items():
            config[key] = coerce(value, DEFAULTS.get(key))

    for key, default in DEFAULTS.items():
        value = environ.get(f'{ENV_PREFIX}{key}')
        if value is None and key in UNPREFIXED_KEYS:
            value = environ.get(key)
        if value is not None:
            config[key] = coerce(value, default)

    if overrides:
        config.update(overrides)

    if not config.get('UPLOAD_DIR'):
        config['UPLOAD_DIR'] = os.path.join(config['DATA_DIR'], 'uploads')

    return config


def configure_logging(level='INFO'):
    """Configure root logging once for the process"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
