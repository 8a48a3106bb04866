from typing import Optional

import structlog
from sqlalchemy import select

from recall_agent.domain.models.errors import RecallAgentError, Unauthorized
from recall_agent.infrastructure.persistence.database import Database
from recall_agent.infrastructure.persistence.tables import UserRecord
from .passwords import hash_password, verify_password

logger = structlog.get_logger(__name__)


class DuplicateUser(RecallAgentError):
    """An account with this email already exists"""

    error_code = "duplicate_user"


class UserStore:
    """Account creation and password checks"""

    def __init__(self, database: Database):
        self.database = database

    async def _find(self, email: str) -> Optional[UserRecord]:
        async with self.database.transaction("find_user") as session:
            result = await session.execute(select(UserRecord).where(UserRecord.email == email))
            return result.scalars().first()

    async def create(self, email: str, password: str, is_admin: bool = False) -> int:
        """Create an account and return its id"""

        if await self._find(email) is not None:
            raise DuplicateUser(f"User {email} already exists")

        async with self.database.transaction("create_user") as session:
            record = UserRecord(email=email, password_hash=hash_password(password), is_admin=is_admin)
            session.add(record)
            await session.flush()
            user_id = record.id

        logger.info("User created", user_id=user_id)
        return user_id

    async def authenticate(self, email: str, password: str) -> UserRecord:
        """Return the account for valid credentials"""

        record = await self._find(email)
        if record is None or not verify_password(password, record.password_hash):
            raise Unauthorized("Invalid credentials")
        return record
