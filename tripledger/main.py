import logging

from fastapi import Depends, FastAPI
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripledger.core.config import settings
from tripledger.core.middleware import configure_logging, setup_middleware
from tripledger.db.base import Base
from tripledger.db.session import engine, get_db
from tripledger.routers import auth, expenses, mileage_logs, ocr, profile, trips, upload
from tripledger.routers import settings as settings_router
from tripledger.services.storage_service import PUBLIC_PREFIX, storage_service

configure_logging()
logger = logging.getLogger(__name__)

# Force database to create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION
)

setup_middleware(app)

# Uploaded receipts and odometer photos
storage_service.ensure_buckets()
app.mount(PUBLIC_PREFIX, StaticFiles(directory=storage_service.root), name="uploads")

# Include our backend logic
app.include_router(auth.router)
app.include_router(trips.router)
app.include_router(upload.router)
app.include_router(expenses.router)
app.include_router(mileage_logs.router)
app.include_router(ocr.router)
app.include_router(profile.router)
app.include_router(settings_router.router)


@app.get("/")
def read_root():
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.PROJECT_VERSION,
        "docs": "/docs",
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "online", "database": "connected"}
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "online", "database": f"disconnected: {str(e)}"}
