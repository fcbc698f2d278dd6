from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from taskdesk.core.config import DATABASE_URL


def make_engine(url: str = DATABASE_URL) -> Engine:
    return create_engine(
        url,
        connect_args={"check_same_thread": False}
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )
