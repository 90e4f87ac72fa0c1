import logging
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from smartbanana import config

logger = logging.getLogger(__name__)

# ==================== COLLECTIONS ====================

USERS = "users"
COURSES = "courses"
CHAPTERS = "chapters"
TESTS = "tests"
TEST_RESULTS = "test_results"
ANNOUNCEMENTS = "announcements"
ENROLLMENTS = "enrollments"
CHAPTER_COMPLETIONS = "chapter_completions"
AUDIT_LOGS = "audit_logs"

ID_PREFIXES = {
    USERS: "USR",
    COURSES: "CRS",
    CHAPTERS: "CHP",
    TESTS: "TST",
    TEST_RESULTS: "RES",
    ANNOUNCEMENTS: "ANN",
    ENROLLMENTS: "ENR",
    CHAPTER_COMPLETIONS: "CMP",
    AUDIT_LOGS: "AUD",
}


class DuplicateRecord(Exception):
    """A unique index rejected an insert."""


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Expose the string _id as id"""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out


def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_doc(doc) for doc in docs]


# ==================== DOCUMENT STORE ====================

class DocumentStore:
    """
    Thin persistence seam used by every service.

    Each call is a single-document (or single-query) operation and is atomic
    on its own; nothing here spans records.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        if not doc_id:
            return None
        return await self.db[collection].find_one({"_id": doc_id})

    async def insert(self, collection: str, doc: dict) -> str:
        doc = dict(doc)
        doc.setdefault("_id", generate_id(ID_PREFIXES.get(collection, "DOC")))
        doc.setdefault("created_at", datetime.utcnow())
        try:
            await self.db[collection].insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateRecord(str(e)) from e
        return doc["_id"]

    async def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        result = await self.db[collection].update_one({"_id": doc_id}, {"$set": fields})
        return result.matched_count > 0

    async def patch_where(self, collection: str, doc_id: str, expected: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        """$set only while the document still holds the expected values"""
        result = await self.db[collection].update_one({**expected, "_id": doc_id}, {"$set": fields})
        return result.matched_count > 0

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    async def query_by_index(
        self,
        collection: str,
        match: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: int = 0,
    ) -> List[dict]:
        cursor = self.db[collection].find(match or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def find_one(self, collection: str, match: Dict[str, Any]) -> Optional[dict]:
        return await self.db[collection].find_one(match)

    async def increment(self, collection: str, doc_id: str, deltas: Dict[str, int]) -> Optional[dict]:
        """$inc and return the updated document"""
        return await self.db[collection].find_one_and_update(
            {"_id": doc_id},
            {"$inc": deltas},
            return_document=ReturnDocument.AFTER,
        )

    async def add_to_set(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        result = await self.db[collection].update_one({"_id": doc_id}, {"$addToSet": {field: value}})
        return result.matched_count > 0

    async def pull(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        result = await self.db[collection].update_one({"_id": doc_id}, {"$pull": {field: value}})
        return result.matched_count > 0


# ==================== CONNECTION ====================

client = AsyncIOMotorClient(config.MONGO_URL)
store = DocumentStore(client[config.MONGO_DB_NAME])


async def get_store() -> DocumentStore:
    """Store dependency"""
    return store


# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create indexes backing every query_by_index lookup and the two
    uniqueness invariants (one enrollment per pair, one completion per pair).
    Called during application startup.
    """
    await db[USERS].create_index("email")
    await db[USERS].create_index("role")
    await db[USERS].create_index([("role", 1), ("user_class", 1)])

    await db[COURSES].create_index("teacher_id")
    await db[COURSES].create_index([("target_class", 1), ("is_published", 1)])

    await db[CHAPTERS].create_index([("course_id", 1), ("order", 1)])

    await db[TESTS].create_index("teacher_id")
    await db[TESTS].create_index("course_id")
    await db[TESTS].create_index([("target_class", 1), ("is_published", 1)])

    await db[TEST_RESULTS].create_index([("test_id", 1), ("student_id", 1)])
    await db[TEST_RESULTS].create_index([("student_id", 1), ("completed_at", -1)])

    await db[ANNOUNCEMENTS].create_index("author_id")
    await db[ANNOUNCEMENTS].create_index("course_id")
    await db[ANNOUNCEMENTS].create_index([("target_class", 1), ("created_at", -1)])

    await db[ENROLLMENTS].create_index([("course_id", 1), ("student_id", 1)], unique=True)
    await db[ENROLLMENTS].create_index("student_id")

    await db[CHAPTER_COMPLETIONS].create_index([("student_id", 1), ("chapter_id", 1)], unique=True)
    await db[CHAPTER_COMPLETIONS].create_index("chapter_id")
    await db[CHAPTER_COMPLETIONS].create_index([("student_id", 1), ("course_id", 1)])

    await db[AUDIT_LOGS].create_index([("target_type", 1), ("target_id", 1)])
    await db[AUDIT_LOGS].create_index([("actor_user_id", 1), ("timestamp", -1)])

    logger.info("Classroom indexes created")
