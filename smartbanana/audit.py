from typing import List, Optional

from smartbanana.database import AUDIT_LOGS, DocumentStore, serialize_many
from smartbanana.models import AuditLog
from smartbanana.permissions import UserContext


async def log_audit(
    store: DocumentStore,
    actor: UserContext,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Log destructive or important actions for auditability

    Args:
        actor: UserContext of whoever performed the action
        action: Action performed (e.g., 'create_course', 'delete_student')
        target_type: Resource type (e.g., 'course', 'test', 'user')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit_log = AuditLog(
        actor_user_id=actor.user_id,
        role=actor.role or "unknown",
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    await store.insert(AUDIT_LOGS, audit_log.model_dump())


async def get_audit_trail(
    store: DocumentStore,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = 100,
) -> List[dict]:
    """Retrieve audit logs, newest first, with optional filters"""
    query = {}
    if target_type:
        query["target_type"] = target_type
    if target_id:
        query["target_id"] = target_id

    logs = await store.query_by_index(AUDIT_LOGS, query, sort=[("timestamp", -1)], limit=limit)
    return serialize_many(logs)
