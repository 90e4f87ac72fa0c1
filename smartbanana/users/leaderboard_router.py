from fastapi import APIRouter, Depends
from typing import List

from smartbanana import config
from smartbanana.database import USERS, DocumentStore, get_store
from smartbanana.models import Role
from smartbanana.progression import DEFAULT_RANK
from smartbanana.users.user_schemas import LeaderboardResponse

router = APIRouter(tags=["Leaderboard"])

# ==================== LEADERBOARD QUERIES ====================

async def get_leaderboard(store: DocumentStore, size: int = None) -> List[dict]:
    """
    Top students by credits, highest first. Equal credits are ordered by id.
    """
    size = size or config.LEADERBOARD_SIZE
    ranked = await store.query_by_index(
        USERS,
        {"role": Role.STUDENT.value},
        sort=[("credits", -1), ("_id", 1)],
        limit=size,
    )

    return [
        {
            "position": idx + 1,
            "name": s.get("name") or "Anonymous",
            "credits": s.get("credits") or 0,
            "tests_completed": s.get("total_tests_completed") or 0,
            "badge": s.get("rank") or DEFAULT_RANK,
        }
        for idx, s in enumerate(ranked)
    ]

# ==================== LEADERBOARD ENDPOINTS ====================

@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard_endpoint(store: DocumentStore = Depends(get_store)):
    """Public top-10 board"""
    return {"entries": await get_leaderboard(store)}
