import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from taskdesk.core.config import CREDENTIAL_KEY
from taskdesk.core.deps import session_scope
from taskdesk.models.credential import StoredCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    token: str
    user_id: Optional[str]
    role: str


class CredentialStore:
    """Persisted client storage for the bearer token and the signed-in user.

    Survives restarts the way browser storage does; one row per ``key`` so
    several profiles can share a database file.
    """

    def __init__(self, session_factory: sessionmaker, key: str = CREDENTIAL_KEY):
        self._session_factory = session_factory
        self._key = key

    def save(self, token: str, user_id: Optional[str], role: str = "student") -> Credential:
        with session_scope(self._session_factory) as db:
            row = db.get(StoredCredential, self._key)
            if row is None:
                row = StoredCredential(key=self._key, token=token, user_id=user_id, role=role)
                db.add(row)
            else:
                row.token = token
                row.user_id = user_id
                row.role = role

            try:
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info("Stored credential for user %s (%s)", user_id, role)
        return Credential(token=token, user_id=user_id, role=role)

    def current(self) -> Optional[Credential]:
        with session_scope(self._session_factory) as db:
            row = db.get(StoredCredential, self._key)
            if row is None or not row.token:
                return None
            return Credential(token=row.token, user_id=row.user_id, role=row.role)

    def get_token(self) -> Optional[str]:
        cred = self.current()
        return cred.token if cred else None

    def get_user_id(self) -> Optional[str]:
        cred = self.current()
        return cred.user_id if cred else None

    def get_role(self) -> Optional[str]:
        cred = self.current()
        return cred.role if cred else None

    def clear(self) -> None:
        with session_scope(self._session_factory) as db:
            db.query(StoredCredential).filter(StoredCredential.key == self._key).delete()
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
