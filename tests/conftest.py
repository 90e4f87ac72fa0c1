"""
Shared fixtures: an in-memory DocumentStore and helpers for seeding users.
"""

import asyncio
import copy
from datetime import datetime

import pytest

from smartbanana.database import (
    CHAPTER_COMPLETIONS, ENROLLMENTS, ID_PREFIXES, USERS, DuplicateRecord, generate_id
)
from smartbanana.permissions import UserContext

UNIQUE_KEYS = {
    ENROLLMENTS: ("course_id", "student_id"),
    CHAPTER_COMPLETIONS: ("student_id", "chapter_id"),
}


class InMemoryStore:
    """Same surface as DocumentStore, backed by dicts kept in insertion order."""

    def __init__(self):
        self.collections = {}

    def _table(self, collection):
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _matches(doc, match):
        return all(doc.get(k) == v for k, v in (match or {}).items())

    async def get(self, collection, doc_id):
        doc = self._table(collection).get(doc_id)
        return copy.deepcopy(doc) if doc else None

    async def insert(self, collection, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", generate_id(ID_PREFIXES.get(collection, "DOC")))
        doc.setdefault("created_at", datetime.utcnow())
        keys = UNIQUE_KEYS.get(collection)
        if keys:
            for other in self._table(collection).values():
                if all(other.get(k) == doc.get(k) for k in keys):
                    raise DuplicateRecord(f"duplicate {collection} {keys}")
        self._table(collection)[doc["_id"]] = doc
        return doc["_id"]

    async def patch(self, collection, doc_id, fields):
        doc = self._table(collection).get(doc_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(fields))
        return True

    async def patch_where(self, collection, doc_id, expected, fields):
        doc = self._table(collection).get(doc_id)
        if doc is None or not self._matches(doc, expected):
            return False
        doc.update(copy.deepcopy(fields))
        return True

    async def delete(self, collection, doc_id):
        return self._table(collection).pop(doc_id, None) is not None

    async def query_by_index(self, collection, match=None, sort=None, limit=0):
        docs = [copy.deepcopy(d) for d in self._table(collection).values() if self._matches(d, match)]
        # Missing values sort lowest, as in Mongo
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: (d.get(field) is not None, d.get(field)), reverse=direction < 0)
        return docs[:limit] if limit else docs

    async def find_one(self, collection, match):
        docs = await self.query_by_index(collection, match, limit=1)
        return docs[0] if docs else None

    async def increment(self, collection, doc_id, deltas):
        doc = self._table(collection).get(doc_id)
        if doc is None:
            return None
        for field, delta in deltas.items():
            doc[field] = (doc.get(field) or 0) + delta
        return copy.deepcopy(doc)

    async def add_to_set(self, collection, doc_id, field, value):
        doc = self._table(collection).get(doc_id)
        if doc is None:
            return False
        values = doc.setdefault(field, [])
        if value not in values:
            values.append(value)
        return True

    async def pull(self, collection, doc_id, field, value):
        doc = self._table(collection).get(doc_id)
        if doc is None:
            return False
        doc[field] = [v for v in doc.get(field, []) if v != value]
        return True

    def all(self, collection, **match):
        """Synchronous peek for assertions"""
        return [copy.deepcopy(d) for d in self._table(collection).values() if self._matches(d, match)]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_user(store):
    """
    make_user("teacher", "Class 8", name="Ms Rao") -> UserContext

    Students start with zeroed counters, teachers with zeroed totals.
    """
    def _make(role=None, user_class=None, **fields):
        doc = {"name": fields.pop("name", f"{role or 'new'} user"), "email": fields.pop("email", None)}
        if role:
            doc["role"] = role
        if user_class:
            doc["user_class"] = user_class
        if role == "student":
            doc.update({"credits": 0, "rank": "Banana Sprout", "total_tests_completed": 0})
        elif role == "teacher":
            doc.update({"total_courses_created": 0, "total_students_enrolled": 0})
        doc.update(fields)
        user_id = run(store.insert(USERS, doc))
        return UserContext(user_id, run(store.get(USERS, user_id)))
    return _make

