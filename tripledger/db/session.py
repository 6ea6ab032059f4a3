from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from tripledger.core.config import settings


def _connect_args() -> dict:
    # SQLite connections are shared across the threadpool FastAPI runs sync routes in
    if settings.DATABASE_URL.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# 1. Engine (Postgres in docker, SQLite for tests and local runs)
# pool_pre_ping=True drops connections the server already closed
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args())

# 2. Session factory, one session per request
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Declarative base shared by users, trips, expenses and mileage logs
Base = declarative_base()


# 3. The Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
