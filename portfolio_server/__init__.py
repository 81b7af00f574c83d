"""Personal portfolio website backend"""

__version__ = '1.0.0'


def create_app(overrides=None):
    from .app import create_app as factory
    return factory(overrides)
