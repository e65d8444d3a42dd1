# lifeops/main.py
import logging
from fastapi import FastAPI
from dotenv import load_dotenv

# load .env before settings-dependent modules are imported
load_dotenv()

from lifeops.config import settings
from lifeops.db import create_indexes, close_client
from lifeops.routes.cron import router as cron_router

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    description="Recurring obligation reminders",
    version=settings.app_version,
)

app.include_router(cron_router, prefix="/api")


@app.on_event("startup")
async def on_startup():
    await create_indexes()


@app.on_event("shutdown")
async def on_shutdown():
    close_client()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "status": "running",
        "version": settings.app_version,
    }
