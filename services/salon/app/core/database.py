from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shared import load_service_config
from shared.kvstore import Base

_config = load_service_config("salon")

_connect_args = {"check_same_thread": False} if _config.database.url.startswith("sqlite") else {}

engine = create_engine(
    _config.database.url,
    connect_args=_connect_args,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

__all__ = ["Base", "SessionLocal", "engine"]
