"""Single-row storage for the shared broadcast state document."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketpulse.models import BroadcastStateRecord

DEFAULT_ROW_ID = "default"


class BroadcastStateRepository:
    def __init__(self, session: Session, *, row_id: str = DEFAULT_ROW_ID) -> None:
        self._session = session
        self.row_id = row_id

    def get(self) -> BroadcastStateRecord | None:
        return self._session.get(BroadcastStateRecord, self.row_id)

    def current_revision(self) -> int | None:
        return self._session.execute(
            select(BroadcastStateRecord.revision).where(BroadcastStateRecord.id == self.row_id)
        ).scalar_one_or_none()

    def save(self, state: dict[str, Any], revision: int) -> BroadcastStateRecord:
        record = self.get()
        if record is None:
            record = BroadcastStateRecord(id=self.row_id, state=state, revision=revision)
            self._session.add(record)
        else:
            # Whole-document replace.
            record.state = state
            record.revision = revision
        self._session.flush()
        return record
