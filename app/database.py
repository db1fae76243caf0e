from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from .config import settings

IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")


def build_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_SQLITE:
            # One shared connection, otherwise every session sees an empty database
            options["poolclass"] = StaticPool
    else:
        # Managed Postgres drops idle connections
        options = {"pool_pre_ping": True, "pool_recycle": 300, "pool_size": 5, "max_overflow": 10}
    return create_engine(url, echo=echo, **options)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def create_db_and_tables():
    # Import for side effects: registers every table on SQLModel.metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def database_ok() -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


def get_session():
    with Session(engine) as session:
        yield session
