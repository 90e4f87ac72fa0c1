"""
SmartBanana Configuration
Database, token and gameplay settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "smartbanana")

# Bearer tokens are minted by the auth service; we only verify them
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Gameplay
LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "10"))
MAX_QUESTIONS_PER_TEST = 10
OPTIONS_PER_QUESTION = 4
CHAPTER_COMPLETION_CREDITS = 1
