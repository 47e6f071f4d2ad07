import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paysync.core.config import settings
from paysync.api.v1.api import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:8080", "http://localhost:8080",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

if not settings.STRIPE_SECRET_KEY:
    logger.warning("STRIPE_SECRET_KEY is not set; running in degraded mode (no payment intents will be created)")


@app.get("/health")
def health():
    return {"status": "ok", "gateway": "enabled" if settings.STRIPE_SECRET_KEY else "disabled"}
