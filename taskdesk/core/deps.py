from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker


# every storage access gets a fresh session, and it will always close.
@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
