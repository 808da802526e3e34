# edudash/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from edudash.core.config import settings


def engine_options(database_url: str) -> dict:
    """create_engine keyword arguments for ``database_url``."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}

    # FastAPI runs sync endpoints in a threadpool
    options = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    return options


engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    from edudash.db.base import Base
    from edudash import models  # noqa

    Base.metadata.create_all(bind=engine)
