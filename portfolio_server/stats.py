"""Site analytics counters kept in stats.json"""

import logging
from datetime import datetime

from .errors import NotFoundError
from .store import empty_document

logger = logging.getLogger(__name__)

# URL name -> counter field
COUNTERS = {
    'visitor': 'visitors',
    'cv-view': 'cvViews',
    'cv-download': 'cvDownloads',
}


def is_count(value):
    return isinstance(value, int) and not isinstance(value, bool)


def normalize(stats):
    """Fill in missing or unusable counters from older stats files"""
    for key, value in empty_document('stats').items():
        if key != 'monthlyVisitors' and not is_count(stats.get(key)):
            stats[key] = value
    monthly = stats.get('monthlyVisitors')
    if not isinstance(monthly, list):
        monthly = []
    monthly = [n if is_count(n) else 0 for n in monthly]
    stats['monthlyVisitors'] = (monthly + [0] * 12)[:12]
    return stats


class StatsManager:
    def __init__(self, store):
        self.store = store

    def get(self):
        return normalize(self.store.load('stats'))

    def increment(self, counter, month=None):
        """Bump one named counter; visitors also bump the monthly slot"""
        field = COUNTERS.get(counter)
        if field is None:
            raise NotFoundError(f"Unknown counter: {counter}")

        if month is None:
            month = datetime.now().month

        def bump(stats):
            normalize(stats)
            stats[field] += 1
            if field == 'visitors':
                stats['monthlyVisitors'][month - 1] += 1
            return dict(stats)

        return self.store.update('stats', bump)

    def record_message(self):
        def bump(stats):
            normalize(stats)
            stats['messageCount'] += 1
            return stats['messageCount']

        return self.store.update('stats', bump)
