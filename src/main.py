import logging
import os
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from src.api.deps import get_file_storage
from src.api.routes.routes import router
from src.infrastructure.db.session import engine
from src.infrastructure.db.models import Base

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="ServiceFinder Booking Engine")

app.include_router(router)
logger = logging.getLogger(__name__)


def wait_for_db(db_engine: Engine) -> None:
    """Block until the database answers ``SELECT 1`` or retries run out."""
    if db_engine.url.get_backend_name() == "sqlite":
        return

    max_retries = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
    retry_delay_seconds = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

    for attempt in range(1, max_retries + 1):
        try:
            with db_engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable. backend=%s", db_engine.url.get_backend_name())
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db(engine)
    Base.metadata.create_all(bind=engine)

    storage = get_file_storage()
    logger.info(
        "Booking engine started. storage=%s timezone=%s",
        type(storage).__name__,
        os.getenv("BOOKING_TIMEZONE", "UTC"),
    )
