# app/main.py
import uvicorn

from app.api import create_app
from app.data.database import Base, engine
from app.utils.logging import get_logger

# IMPORT ALL MODELS FIRST (BEFORE ANY CREATE_ALL)
from app.data import models  # noqa: F401

logger = get_logger(__name__)

logger.info("=" * 80)
logger.info("INITIALIZING DATABASE...")
logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
logger.info("=" * 80)

try:
    Base.metadata.create_all(bind=engine)
    logger.info("DATABASE TABLES CREATED SUCCESSFULLY")
except Exception as e:
    logger.error(f"FAILED TO CREATE TABLES: {e}")
    raise


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
