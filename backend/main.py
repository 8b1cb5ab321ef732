"""
GradeTree: hierarchical weighted averages for graded subjects.
FastAPI backend entry point.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment before the routers read their settings
load_dotenv()

from routes.averages import router as averages_router  # noqa: E402
from routes.cards import router as cards_router  # noqa: E402
from routes.common import MAX_HISTORY_DAYS  # noqa: E402

APP_NAME = os.getenv("APP_NAME", "GradeTree")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{APP_NAME} API",
    description=(
        "Weighted averages over a tree of subjects: global and per-subject "
        "averages, rankings, history, impact and trends."
    ),
    version="1.0.0",
)

# CORS: allow the frontend dev servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(averages_router, prefix="/api/averages", tags=["Averages"])
app.include_router(cards_router, prefix="/api/cards", tags=["Cards"])

logger.info("%s started (log level %s, max history %d days)", APP_NAME, LOG_LEVEL, MAX_HISTORY_DAYS)


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "app_name": APP_NAME}


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "app_name": APP_NAME,
        "max_history_days": MAX_HISTORY_DAYS,
        "scale": 20,
    }
