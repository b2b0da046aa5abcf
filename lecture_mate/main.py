import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lecture_mate.database import init_db
from lecture_mate.routes import lectures, recording

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create SQLite tables on startup; release any live recording on shutdown."""
    await init_db()
    yield
    session = recording._active["session"]
    if session is not None:
        session.dispose()


app = FastAPI(
    title="lecture-mate",
    description="Live lecture transcription with automatic highlight detection",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(recording.router)
app.include_router(lectures.router)
