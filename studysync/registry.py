"""In-memory participant registry.

One ``ParticipantRecord`` per participant id, created on first registration
and kept for the lifetime of the process. The registry is the only owner of
each participant's live connection: other components relay through it and
never hold the connection themselves.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from .dispatch import Delivery, DeliveryKind
from .identity import participant_id
from .stages import NOT_OCCURRED, StageFlag, VideoStages

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """A participant's live real-time session."""

    async def send_event(self, event: str, data: Any) -> None: ...


@dataclass
class ParticipantRecord:
    id: str
    connection: Optional[Connection] = field(default=None, repr=False)
    completed: bool = False
    completed_at: StageFlag = NOT_OCCURRED
    stages: Dict[str, VideoStages] = field(default_factory=dict)

    def video(self, video_id: str) -> VideoStages:
        """Stage flags for *video_id*, all NotOccurred on first sight."""
        if video_id not in self.stages:
            self.stages[video_id] = VideoStages()
        return self.stages[video_id]


class ParticipantRegistry:
    def __init__(self, namespace: uuid.UUID):
        self.namespace = namespace
        self._records: Dict[str, ParticipantRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def identify(self, name: str) -> str:
        return participant_id(name, self.namespace)

    def register(self, name: str, connection: Connection) -> str:
        """Create the record if needed and bind *connection* to it.

        The newest connection always wins; any previous one stops receiving
        relays.
        """
        pid = self.identify(name)
        record = self._records.get(pid)
        if record is None:
            record = ParticipantRecord(id=pid)
            self._records[pid] = record
            logger.info(f"[{pid[:8]}] Registered new participant")
        else:
            logger.info(f"[{pid[:8]}] Participant re-registered, replacing connection")
        record.connection = connection
        return pid

    def lookup(self, pid: str) -> Optional[ParticipantRecord]:
        return self._records.get(pid)

    def exists(self, pid: str) -> bool:
        return pid in self._records

    def lookup_name(self, name: str) -> Optional[str]:
        """Id for *name*, but only if that name has registered."""
        pid = self.identify(name)
        return pid if self.exists(pid) else None

    def release(self, pid: str, connection: Connection) -> bool:
        """Drop *connection* if it is still the participant's current one."""
        record = self._records.get(pid)
        if record is None or record.connection is not connection:
            return False
        record.connection = None
        logger.info(f"[{pid[:8]}] Connection released")
        return True

    async def relay(self, pid: str, event: str, data: Any) -> Delivery:
        """Send *event* to the participant's current connection, if any."""
        record = self._records.get(pid)
        connection = record.connection if record else None
        if connection is None:
            return Delivery(DeliveryKind.RELAY, pid, ok=False, error="no live connection")
        await connection.send_event(event, data)
        return Delivery(DeliveryKind.RELAY, pid, ok=True)
