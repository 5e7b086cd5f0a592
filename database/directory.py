"""Minimal user and hire request directories

These stand in for the identity and hire-lifecycle collaborators. Chat code
only reads from them.
"""
import logging
import uuid

from domain.constants import HireStatus, UserRole
from domain.models import HireRequest, User

from .chat_database import ChatDatabase, utcnow

logger = logging.getLogger(__name__)


def _parse_status(value: str) -> HireStatus:
    try:
        return HireStatus(value)
    except ValueError:
        logger.warning("Unrecognized hire request status %r", value)
        return HireStatus.UNKNOWN


class UserDirectory:
    def __init__(self, db: ChatDatabase) -> None:
        self.db = db

    async def get_user(self, user_id: str) -> User | None:
        cursor = await self.db.conn.execute(
            "SELECT user_id, name, role FROM users WHERE user_id = ?",
            (user_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return User(user_id=row["user_id"], name=row["name"], role=UserRole(row["role"]))

    async def create_user(self, name: str, role: UserRole = UserRole.BUYER, user_id: str | None = None) -> User:
        user = User(user_id=user_id or str(uuid.uuid4()), name=name, role=role)
        async with self.db.transaction() as conn:
            await conn.execute(
                "INSERT INTO users (user_id, name, role, created_at) VALUES (?, ?, ?, ?)",
                (user.user_id, user.name, user.role.value, utcnow().isoformat())
            )
        return user


class HireRequestDirectory:
    def __init__(self, db: ChatDatabase) -> None:
        self.db = db

    async def get(self, hire_id: str) -> HireRequest | None:
        cursor = await self.db.conn.execute(
            "SELECT hire_id, buyer_id, student_id, service_id, status FROM hire_requests WHERE hire_id = ?",
            (hire_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return HireRequest(
            hire_id=row["hire_id"],
            buyer_id=row["buyer_id"],
            student_id=row["student_id"],
            service_id=row["service_id"],
            status=_parse_status(row["status"]),
        )

    async def create(
        self,
        buyer_id: str,
        student_id: str,
        status: HireStatus = HireStatus.PENDING,
        service_id: str | None = None,
        hire_id: str | None = None,
    ) -> HireRequest:
        hire = HireRequest(
            hire_id=hire_id or str(uuid.uuid4()),
            buyer_id=buyer_id,
            student_id=student_id,
            service_id=service_id,
            status=status,
        )
        async with self.db.transaction() as conn:
            await conn.execute(
                "INSERT INTO hire_requests (hire_id, buyer_id, student_id, service_id, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (hire.hire_id, hire.buyer_id, hire.student_id, hire.service_id, hire.status.value, utcnow().isoformat())
            )
        return hire

    async def set_status(self, hire_id: str, status: HireStatus) -> None:
        """Lifecycle transition; never called by chat code"""
        async with self.db.transaction() as conn:
            await conn.execute(
                "UPDATE hire_requests SET status = ? WHERE hire_id = ?",
                (status.value, hire_id)
            )
