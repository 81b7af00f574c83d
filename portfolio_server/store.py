"""
JSON file store
One JSON document per resource type inside the data directory
"""

import os
import json
import time
import logging
import tempfile
import threading
from pathlib import Path

from .errors import StoreError

logger = logging.getLogger(__name__)

# Document name -> empty value seeded on first start
DOCUMENTS = {
    'projects': [],
    'education': [],
    'skills': [],
    'messages': [],
    'users': [],
    'about': {},
    'stats': {
        'visitors': 0,
        'cvViews': 0,
        'cvDownloads': 0,
        'messageCount': 0,
        'monthlyVisitors': [0] * 12,
    },
}


def empty_document(name):
    """Fresh copy of a document's empty value"""
    return json.loads(json.dumps(DOCUMENTS.get(name, [])))


class JsonStore:
    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self._locks = {}
        self._locks_guard = threading.Lock()
        self._id_lock = threading.Lock()
        self._last_id = 0

    def ensure_ready(self):
        """Create the data directory and seed missing documents"""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for name in DOCUMENTS:
            if not self.path_for(name).exists():
                self.save(name, empty_document(name))
                logger.info(f"Initialized {name}.json")

    def path_for(self, name):
        return self.data_dir / f"{name}.json"

    def lock_for(self, name):
        """Per-document lock shared by every request in this process"""
        with self._locks_guard:
            if name not in self._locks:
                self._locks[name] = threading.RLock()
            return self._locks[name]

    def load(self, name, default=None):
        """Return the parsed document, or the default when missing or corrupt"""
        if default is None:
            default = empty_document(name)

        file_path = self.path_for(name)
        if not file_path.exists():
            return default

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {file_path}, treating as empty: {e}")
            return default

        if type(document) is not type(default):
            logger.warning(f"Could not read {file_path}, treating as empty: expected {type(default).__name__}, got {type(document).__name__}")
            return default
        return document

    def save(self, name, document):
        """Replace the whole document; written to a temp file then renamed"""
        file_path = self.path_for(name)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix='.tmp', dir=str(self.data_dir))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, file_path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving {file_path}: {e}")
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StoreError(f"Failed to save {name}") from e

    def update(self, name, fn, default=None):
        """Load, apply fn(document) and save, holding the document lock.

        fn mutates the document in place and returns a result for the caller.
        Raising inside fn aborts without writing.
        """
        with self.lock_for(name):
            document = self.load(name, default)
            result = fn(document)
            self.save(name, document)
            return result

    def next_id(self):
        """Millisecond timestamp id, strictly increasing within the process"""
        with self._id_lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last_id:
                candidate = self._last_id + 1
            self._last_id = candidate
            return str(candidate)
