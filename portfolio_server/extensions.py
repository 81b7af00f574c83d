from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

cors = CORS()
limiter = Limiter(key_func=get_remote_address)


class Portfolio:
    """Managers shared by the request handlers of one app"""

    def __init__(self, store, uploads, managers, users, stats, about, mailer):
        self.store = store
        self.uploads = uploads
        self.managers = managers
        self.messages = managers['messages']
        self.users = users
        self.stats = stats
        self.about = about
        self.mailer = mailer
