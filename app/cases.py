"""Case and chat-message persistence.

CaseStore is the interface the routes depend on; InMemoryCaseStore backs it
for single-process deployments and tests.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import uuid4

from app.models.cases import Case, CaseCreate, CaseUpdate, ChatMessage, ChatMessageCreate


class CaseStore(ABC):
    @abstractmethod
    async def list_cases(self) -> list[Case]:
        """All cases, highest case number first."""

    @abstractmethod
    async def get_case(self, case_id: str) -> Case | None: ...

    @abstractmethod
    async def get_case_by_number(self, case_number: int) -> Case | None: ...

    @abstractmethod
    async def create_case(self, payload: CaseCreate) -> Case: ...

    @abstractmethod
    async def update_case(self, case_id: str, updates: CaseUpdate) -> Case | None: ...

    @abstractmethod
    async def delete_case(self, case_id: str) -> Case | None:
        """Delete a case and its messages, returning the removed case."""

    @abstractmethod
    async def list_messages(self, case_id: str) -> list[ChatMessage]: ...

    @abstractmethod
    async def create_message(self, case_id: str, payload: ChatMessageCreate) -> ChatMessage: ...

    @abstractmethod
    async def delete_messages(self, case_id: str) -> None: ...


class InMemoryCaseStore(CaseStore):
    """
    Process-local case store.

    Case numbers are contiguous from 1: deleting a case shifts every later
    case down by one.
    """

    def __init__(self) -> None:
        self._cases: dict[str, Case] = {}
        self._messages: dict[str, list[ChatMessage]] = {}
        self._lock = asyncio.Lock()

    async def list_cases(self) -> list[Case]:
        return sorted(self._cases.values(), key=lambda c: c.case_number, reverse=True)

    async def get_case(self, case_id: str) -> Case | None:
        return self._cases.get(case_id)

    async def get_case_by_number(self, case_number: int) -> Case | None:
        return next((c for c in self._cases.values() if c.case_number == case_number), None)

    async def create_case(self, payload: CaseCreate) -> Case:
        async with self._lock:
            next_number = max((c.case_number for c in self._cases.values()), default=0) + 1
            case = Case(
                id=str(uuid4()),
                case_number=next_number,
                created_at=datetime.now(timezone.utc),
                **payload.model_dump(),
            )
            self._cases[case.id] = case
            return case

    async def update_case(self, case_id: str, updates: CaseUpdate) -> Case | None:
        async with self._lock:
            existing = self._cases.get(case_id)
            if existing is None:
                return None

            changes = updates.model_dump(exclude_none=True)
            if not changes:
                return existing

            updated = existing.model_copy(update=changes)
            self._cases[case_id] = updated
            return updated

    async def delete_case(self, case_id: str) -> Case | None:
        async with self._lock:
            removed = self._cases.pop(case_id, None)
            if removed is None:
                return None

            self._messages.pop(case_id, None)
            for other_id, other in self._cases.items():
                if other.case_number > removed.case_number:
                    self._cases[other_id] = other.model_copy(
                        update={"case_number": other.case_number - 1}
                    )
            return removed

    async def list_messages(self, case_id: str) -> list[ChatMessage]:
        return list(self._messages.get(case_id, []))

    async def create_message(self, case_id: str, payload: ChatMessageCreate) -> ChatMessage:
        message = ChatMessage(
            id=str(uuid4()),
            case_id=case_id,
            created_at=datetime.now(timezone.utc),
            **payload.model_dump(),
        )
        async with self._lock:
            self._messages.setdefault(case_id, []).append(message)
        return message

    async def delete_messages(self, case_id: str) -> None:
        async with self._lock:
            self._messages.pop(case_id, None)
