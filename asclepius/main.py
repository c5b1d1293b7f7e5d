# asclepius/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from asclepius.db import get_db
from asclepius.db_init import ensure_indexes
from asclepius.errors import AsclepiusError
from asclepius.routes import auth, chat, directory, exercises, symptoms
from asclepius.services.countdown import CountdownRegistry
from asclepius.services.feed import build_feed
from asclepius.storage import backend
from asclepius.utils.logger import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Asclepius")

# Routers
app.include_router(auth.router)
app.include_router(directory.router)
app.include_router(exercises.router)
app.include_router(symptoms.router)
app.include_router(chat.router)


@app.on_event("startup")
async def _startup():
    setup_logging()

    # 1) Blob storage (Azure Blob or S3); skipped when already wired up
    if backend.blob_store is None:
        try:
            backend.storage_startup()
            await backend.ensure_buckets()
        except Exception as e:
            logger.warning("Blob storage init skipped: %s", e)

    # 2) Indexes
    try:
        await ensure_indexes(get_db())
    except PyMongoError as e:
        logger.warning("Index creation skipped: %s", e)

    # 3) In-process state: running countdowns and chat fan-out
    app.state.countdowns = CountdownRegistry()
    app.state.chat_feed = build_feed(get_db())


@app.on_event("shutdown")
async def _shutdown():
    await app.state.countdowns.cancel_all()


@app.exception_handler(AsclepiusError)
async def asclepius_error_handler(request: Request, exc: AsclepiusError):
    return JSONResponse(
        {"detail": exc.message, "error": type(exc).__name__},
        status_code=exc.status_code,
    )


@app.get("/health")
def health():
    return {"status": "ok"}
