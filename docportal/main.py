import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from docportal.api.deps import get_db
from docportal.api.routes.documents import router as documents_router
from docportal.core.config import settings
from docportal.core.database import init_db
from docportal.core.errors import register_exception_handlers
from docportal.core.logging_config import setup_logging

setup_logging("docportal", settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Production schemas come from Alembic
    if settings.ENV == "dev":
        init_db()
    logger.info("Document portal started (env=%s)", settings.ENV)
    yield


# 1) Create the app FIRST
app = FastAPI(title="School Portal Documents", lifespan=lifespan)

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Content-SHA256"],
)

# 3) Include routers and error handlers AFTER app is created
app.include_router(documents_router)
register_exception_handlers(app)


# 4) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "docportal"}


@app.get("/db-health")
def db_health(db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    return {"ok": True, "db": "connected"}
