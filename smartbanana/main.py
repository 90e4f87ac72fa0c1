"""
SmartBanana Classroom - Main Application
Class-scoped courses, chapters, tests and announcements with gamified credits
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartbanana import config
from smartbanana.announcements.announcement_router import router as announcement_router
from smartbanana.assessments.assessment_router import router as assessment_router
from smartbanana.courses.chapter_router import router as chapter_router
from smartbanana.courses.course_router import router as course_router
from smartbanana.database import create_indexes, store
from smartbanana.users.leaderboard_router import router as leaderboard_router
from smartbanana.users.user_router import router as user_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SmartBanana Classroom API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    await create_indexes(store.db)
    logger.info("Classroom system initialized")


# ==================== ROUTER REGISTRATION ====================
app.include_router(user_router)
app.include_router(leaderboard_router)
app.include_router(course_router)
app.include_router(chapter_router)
app.include_router(assessment_router)
app.include_router(announcement_router)
# ============================================================


@app.get("/health")
async def health():
    return {"status": "ok"}
