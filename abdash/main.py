import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from abdash.core.config import settings
from abdash.routers import health, stats

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router)
app.include_router(stats.router, prefix=settings.API_V1_PREFIX)
