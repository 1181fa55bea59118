# caltrack/database.py
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool
import os
from dotenv import load_dotenv

load_dotenv()

# Build Postgres URL from individual env vars if DATABASE_URL is not set directly
if not os.getenv("DATABASE_URL"):
    db_user = os.getenv("DB_USER", "postgres")
    db_pass = os.getenv("DB_PASSWORD", "password")
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_DATABASE", "caltrack")
    DATABASE_URL = f"postgresql://{db_user}:{db_pass}@{db_host}:{db_port}/{db_name}"
else:
    DATABASE_URL = os.getenv("DATABASE_URL")


def build_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False)
    # Background triggers run on other threads; in-memory DBs need one shared connection
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


engine = build_engine(DATABASE_URL)

def init_db():
    from . import models  # noqa: F401  (registers tables)
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
