"""
Resource managers
Whole-file CRUD over the JSON store: load all, locate by id, mutate, save all
"""

import json
import hashlib
import logging
from datetime import datetime, timezone

from .errors import ValidationError, NotFoundError, PreconditionFailed
from .uploads import is_data_url

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ('id', 'createdAt', 'updatedAt')


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def split_list(value):
    """Accept a list or a comma separated string; drop blanks"""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value)]


def etag_for(record):
    payload = json.dumps(record, sort_keys=True, ensure_ascii=False).encode('utf-8')
    return f'"{hashlib.sha1(payload).hexdigest()}"'


def etag_matches(if_match, record):
    """If-Match check; weak validators (W/"...") compare by their opaque tag"""
    current = etag_for(record)
    for candidate in if_match.split(','):
        candidate = candidate.strip()
        if candidate.startswith('W/'):
            candidate = candidate[2:]
        if candidate in ('*', current):
            return True
    return False


def same_id(record, item_id):
    return str(record.get('id')) == str(item_id)


def year_sort_key(record):
    try:
        return int(record.get('year'))
    except (TypeError, ValueError):
        return 0


class ResourceManager:
    """CRUD for one JSON collection"""

    def __init__(self, store, name, label=None, required=(), list_fields=(), sort_key=None, sort_reverse=False):
        self.store = store
        self.name = name
        self.label = label or name.rstrip('s').capitalize()
        self.required = tuple(required)
        self.list_fields = tuple(list_fields)
        self.sort_key = sort_key
        self.sort_reverse = sort_reverse

    def clean(self, data, partial=False):
        """Validate and normalise incoming fields"""
        if not isinstance(data, dict):
            raise ValidationError(f"{self.label} data required")

        cleaned = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}

        if not partial:
            missing = [field for field in self.required if cleaned.get(field) in (None, '')]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        else:
            blanked = [field for field in self.required if field in cleaned and cleaned[field] in (None, '')]
            if blanked:
                raise ValidationError(f"Fields cannot be empty: {', '.join(blanked)}")

        for field in self.list_fields:
            if field in cleaned:
                cleaned[field] = split_list(cleaned[field])

        return cleaned

    def list(self):
        items = self.store.load(self.name)
        if self.sort_key:
            items = sorted(items, key=self.sort_key, reverse=self.sort_reverse)
        return items

    def get(self, item_id):
        item = next((i for i in self.store.load(self.name) if same_id(i, item_id)), None)
        if item is None:
            raise NotFoundError(f"{self.label} not found")
        return item

    def create(self, data):
        cleaned = self.clean(data)
        timestamp = now_iso()
        record = {'id': self.store.next_id(), **cleaned, 'createdAt': timestamp, 'updatedAt': timestamp}

        def append(items):
            items.append(record)
            return record

        self.store.update(self.name, append)
        logger.info(f"Created {self.name} record {record['id']}")
        return record

    def update(self, item_id, data, if_match=None):
        """Merge data over the stored record; returns (updated, previous)"""
        cleaned = self.clean(data, partial=True)

        def merge(items):
            for index, item in enumerate(items):
                if same_id(item, item_id):
                    if if_match and not etag_matches(if_match, item):
                        raise PreconditionFailed(f"{self.label} was modified by another request")
                    updated = {**item, **cleaned, 'updatedAt': now_iso()}
                    items[index] = updated
                    return updated, item
            raise NotFoundError(f"{self.label} not found")

        updated, previous = self.store.update(self.name, merge)
        logger.info(f"Updated {self.name} record {item_id}")
        return updated, previous

    def delete(self, item_id):
        """Remove the record and return it"""
        def remove(items):
            remaining = [i for i in items if not same_id(i, item_id)]
            if len(remaining) == len(items):
                raise NotFoundError(f"{self.label} not found")
            removed = next(i for i in items if same_id(i, item_id))
            items[:] = remaining
            return removed

        removed = self.store.update(self.name, remove)
        logger.info(f"Deleted {self.name} record {item_id}")
        return removed


def parse_level(value):
    """Whole number from an int, an integral float or a digit string; None otherwise"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class SkillManager(ResourceManager):
    def clean(self, data, partial=False):
        cleaned = super().clean(data, partial)
        if 'level' in cleaned and cleaned['level'] not in (None, ''):
            level = parse_level(cleaned['level'])
            if level is None or not 0 <= level <= 100:
                raise ValidationError('Skill level must be a number between 0 and 100')
            cleaned['level'] = level
        return cleaned


class EducationManager(ResourceManager):
    def clean(self, data, partial=False):
        cleaned = super().clean(data, partial)
        year = cleaned.get('year')
        if isinstance(year, str) and year.strip().isdigit():
            cleaned['year'] = int(year.strip())
        return cleaned


class ProjectManager(ResourceManager):
    """Projects carry an optional uploaded image"""

    def __init__(self, store, uploads):
        super().__init__(
            store, 'projects', label='Project',
            required=('title', 'description'),
            list_fields=('technologies',),
        )
        self.uploads = uploads

    def _attach_image(self, cleaned, image_file):
        if image_file is not None and image_file.filename:
            cleaned['image'] = self.uploads.save_file(image_file, 'projects')
        elif is_data_url(cleaned.get('image')):
            cleaned['image'] = self.uploads.save_data_url(cleaned['image'], 'projects')
        return cleaned

    def create(self, data, image_file=None):
        self.clean(data)
        original = dict(data)
        data = self._attach_image(dict(data), image_file)
        uploaded = data.get('image') if data.get('image') != original.get('image') else None
        try:
            return super().create(data)
        except Exception:
            # the record was never saved, so nothing references the file
            if uploaded:
                self.uploads.delete(uploaded)
            raise

    def update(self, item_id, data, if_match=None, image_file=None):
        self.clean(data, partial=True)
        original = dict(data)
        data = self._attach_image(dict(data), image_file)
        uploaded = data.get('image') if data.get('image') != original.get('image') else None
        try:
            updated, previous = super().update(item_id, data, if_match)
        except Exception:
            if uploaded:
                self.uploads.delete(uploaded)
            raise

        old_image = previous.get('image')
        if old_image and old_image != updated.get('image'):
            self.uploads.delete(old_image)
        return updated, previous

    def delete(self, item_id):
        removed = super().delete(item_id)
        if removed.get('image'):
            self.uploads.delete(removed['image'])
        return removed


class MessageManager(ResourceManager):
    """Contact form submissions"""

    FIELDS = ('name', 'email', 'company', 'projectType', 'message')

    def __init__(self, store):
        super().__init__(store, 'messages', label='Message', required=('name', 'email', 'message'))

    def clean(self, data, partial=False):
        if not isinstance(data, dict):
            raise ValidationError('Message data required')
        data = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items() if k in self.FIELDS}
        cleaned = super().clean(data, partial)
        email = cleaned.get('email')
        if email is not None and '@' not in str(email):
            raise ValidationError('Invalid email address')
        return cleaned

    def create(self, data):
        cleaned = self.clean(data)
        timestamp = now_iso()
        record = {'id': self.store.next_id(), **cleaned, 'read': False, 'createdAt': timestamp, 'updatedAt': timestamp}

        def append(items):
            items.append(record)
            return record

        self.store.update(self.name, append)
        logger.info(f"Stored message {record['id']} from {record.get('email')}")
        return record

    def list(self):
        return sorted(self.store.load(self.name), key=lambda m: m.get('createdAt') or '', reverse=True)

    def mark_read(self, item_id):
        def mark(items):
            for item in items:
                if same_id(item, item_id):
                    item['read'] = True
                    item['updatedAt'] = now_iso()
                    return item
            raise NotFoundError('Message not found')

        return self.store.update(self.name, mark)

    def unread_count(self):
        return sum(1 for m in self.store.load(self.name) if not m.get('read'))


class AboutManager:
    """Singleton about-me document"""

    def __init__(self, store):
        self.store = store

    def get(self):
        return self.store.load('about')

    def update(self, data):
        if not isinstance(data, dict) or not data:
            raise ValidationError('About data required')
        cleaned = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}

        def merge(about):
            about.update(cleaned)
            about['updatedAt'] = now_iso()
            return dict(about)

        return self.store.update('about', merge)


def build_managers(store, uploads):
    """Name -> manager for every CRUD collection"""
    return {
        'projects': ProjectManager(store, uploads),
        'education': EducationManager(
            store, 'education', label='Education entry',
            required=('year', 'title', 'institution'),
            list_fields=('highlights', 'skills'),
            sort_key=year_sort_key, sort_reverse=True,
        ),
        'skills': SkillManager(
            store, 'skills', label='Skill',
            required=('name', 'category'),
            list_fields=('tags',),
        ),
        'messages': MessageManager(store),
    }
