# storefront/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.utils.settings import DATABASE_URL


def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # sessions are handed between worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(bind) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


Base = declarative_base()

engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    # models must be registered on Base.metadata before create_all
    import storefront.data.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
