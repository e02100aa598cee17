"""Stage notifications from the survey platform.

The survey platform delivers every notification several times, so each
(participant, video, stage) is acted on once: the first delivery stamps the
flag, relays the stage to the participant's browser and saves a snapshot;
later copies change nothing.

Everything up to scheduling the relay and the save runs without awaiting,
so two copies of the same notification can never both see an unset flag.
"""
from __future__ import annotations

import enum
import logging
from typing import Optional

from .dispatch import DeliveryKind, Dispatcher
from .persistence import Clock, MetadataGateway, now_ms
from .registry import ParticipantRegistry
from .stages import OccurredAt, Stage

logger = logging.getLogger(__name__)


class NotificationOutcome(enum.Enum):
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    UNKNOWN_PARTICIPANT = "unknown_participant"
    COMPLETED = "completed"
    UNKNOWN_STAGE = "unknown_stage"
    INVALID = "invalid"


class StageRelay:
    def __init__(
        self,
        registry: ParticipantRegistry,
        gateway: MetadataGateway,
        dispatcher: Dispatcher,
        clock: Optional[Clock] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.clock = clock or now_ms

    def handle(self, participant_id: str, video_id: str, stage_name: str) -> NotificationOutcome:
        """Apply one stage notification. Must be called on the event loop."""
        tag = participant_id[:8]
        record = self.registry.lookup(participant_id)
        if record is None:
            logger.warning(f"[{tag}] Notification for unregistered participant: {stage_name} {video_id}")
            return NotificationOutcome.UNKNOWN_PARTICIPANT
        if record.completed:
            logger.debug(f"[{tag}] Already completed, ignoring {stage_name} {video_id}")
            return NotificationOutcome.COMPLETED

        stage = Stage.parse(stage_name)
        if stage is None:
            logger.warning(f"[{tag}] Unknown stage {stage_name!r} for video {video_id!r}")
            return NotificationOutcome.UNKNOWN_STAGE

        stages = record.video(video_id)
        now = self.clock()

        if stage.is_terminal:
            record.completed = True
            record.completed_at = OccurredAt(now)
        elif not stages.mark(stage, now):
            logger.debug(f"[{tag}] Duplicate {stage.value} for {video_id}")
            return NotificationOutcome.DUPLICATE

        logger.info(f"[{tag}] {stage.value} {video_id}")
        self.dispatcher.send(
            DeliveryKind.RELAY, participant_id,
            self.registry.relay(participant_id, stage.value, video_id),
        )
        self.dispatcher.send(
            DeliveryKind.PERSIST, participant_id,
            self.gateway.save(participant_id, self.gateway.snapshot(record)),
        )
        return NotificationOutcome.RECORDED
