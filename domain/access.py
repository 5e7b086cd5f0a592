"""Access policy: who may use the chat of a hire request, and when

The checks are read-only and re-run on every operation, so a hire request
that stops being ACCEPTED blocks the very next message.
"""
from typing import Protocol

from .constants import HireStatus
from .errors import ChatUnavailable, HireRequestNotFound, NotParticipant
from .models import HireRequest, Identity


class HireRequestLookup(Protocol):
    async def get(self, hire_id: str) -> HireRequest | None: ...


def _valid_id(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def chat_unlocked(hire: HireRequest) -> bool:
    """Acceptance alone unlocks chat"""
    return hire.status == HireStatus.ACCEPTED


def participant_of(hire: HireRequest, identity: Identity) -> bool:
    """Buyer, student, or an administrator observing the room"""
    if identity.is_admin:
        return True
    return identity.user_id in hire.participant_ids


def ensure_chat_available(hire: HireRequest) -> None:
    if not chat_unlocked(hire):
        raise ChatUnavailable()


def ensure_participant(hire: HireRequest, identity: Identity) -> None:
    if not participant_of(hire, identity):
        raise NotParticipant()


class AccessPolicy:
    """Evaluates chat access against the hire request collaborator"""

    def __init__(self, hire_requests: HireRequestLookup) -> None:
        self.hire_requests = hire_requests

    async def _lookup(self, hire_id: str) -> HireRequest:
        hire = await self.hire_requests.get(hire_id)
        if hire is None:
            raise HireRequestNotFound()
        return hire

    async def is_chat_available(self, hire_id: object) -> bool:
        """True iff the hire request exists and is ACCEPTED

        Raises HireRequestNotFound when a well-formed id matches nothing.
        """
        if not _valid_id(hire_id):
            return False
        hire = await self._lookup(hire_id)
        return chat_unlocked(hire)

    async def is_participant(self, identity: Identity, hire_id: object) -> bool:
        if not _valid_id(hire_id) or not _valid_id(identity.user_id):
            return False
        hire = await self._lookup(hire_id)
        return participant_of(hire, identity)

    async def authorize(self, identity: Identity, hire_id: object) -> HireRequest:
        """Return the hire request if identity may chat in it, else raise

        Strangers are rejected before the status is considered so they learn
        nothing about the hire request's state.
        """
        if not _valid_id(hire_id):
            raise HireRequestNotFound()
        hire = await self._lookup(hire_id)
        ensure_participant(hire, identity)
        ensure_chat_available(hire)
        return hire
