import os

# Must be set before the app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RATE_LIMIT_PER_MINUTE"] = "0"
os.environ["SMTP_HOST"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ.pop("REDIS_URL", None)

import pytest
from sqlmodel import SQLModel, Session

from app.database import create_db_and_tables, engine


@pytest.fixture
def db():
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    with Session(engine) as session:
        yield session
