from sqlalchemy.engine import Engine

from taskdesk.db.base_class import Base

# import models so SQLAlchemy registers them
from taskdesk.models import credential  # noqa: F401


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
