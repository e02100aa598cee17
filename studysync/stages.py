"""Stage vocabulary and per-video stage flags.

Each flag is a tagged value: ``NotOccurred`` until the first notification,
then ``OccurredAt(timestamp_ms)`` forever. On disk the two serialise as
``false`` and an epoch-millisecond integer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Union


class Stage(enum.Enum):
    START_VIDEO = "start_video"
    STOP_VIDEO = "stop_video"
    START_EMOTION = "start_emotion"
    STOP_EMOTION = "stop_emotion"
    START_QUIZ = "start_quiz"
    STOP_QUIZ = "stop_quiz"
    END_STUDY = "end_study"

    @property
    def is_terminal(self) -> bool:
        return self is Stage.END_STUDY

    @classmethod
    def parse(cls, value: str) -> Optional["Stage"]:
        try:
            return cls(value)
        except ValueError:
            return None


VIDEO_STAGES = tuple(s for s in Stage if not s.is_terminal)


@dataclass(frozen=True)
class NotOccurred:
    def to_json(self) -> bool:
        return False


@dataclass(frozen=True)
class OccurredAt:
    timestamp: int  # epoch milliseconds

    def to_json(self) -> int:
        return self.timestamp


StageFlag = Union[NotOccurred, OccurredAt]

NOT_OCCURRED = NotOccurred()


@dataclass
class VideoStages:
    """The six start/stop flags for one video."""
    flags: Dict[Stage, StageFlag] = field(
        default_factory=lambda: {s: NOT_OCCURRED for s in VIDEO_STAGES}
    )

    def get(self, stage: Stage) -> StageFlag:
        return self.flags[stage]

    def mark(self, stage: Stage, timestamp: int) -> bool:
        """Set *stage* to ``OccurredAt(timestamp)`` if it has not occurred.

        Returns True only on the transition; an already-set flag is never
        overwritten.
        """
        if stage not in self.flags:
            raise ValueError(f"{stage.value} is not a per-video stage")
        if isinstance(self.flags[stage], OccurredAt):
            return False
        self.flags[stage] = OccurredAt(timestamp)
        return True

    def to_json(self) -> dict:
        return {s.value: flag.to_json() for s, flag in self.flags.items()}
