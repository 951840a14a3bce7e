import urllib.parse

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import get_settings


def normalize_database_url(url: str) -> str:
    # sqlite paths carry their meaning in the slash count; urlunparse collapses them
    if url.startswith("sqlite"):
        return url
    # Ensure proper encoding by parsing and reconstructing the URL
    try:
        url = urllib.parse.urlunparse(urllib.parse.urlparse(url))
    except ValueError:
        url = url.encode("utf-8", errors="replace").decode("utf-8")
    return url


DATABASE_URL = normalize_database_url(get_settings().database_url)
_backend = make_url(DATABASE_URL).get_backend_name()

connect_args = {}
if _backend == "postgresql":
    connect_args = {"options": "-c timezone=utc"}
elif _backend == "sqlite":
    connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
