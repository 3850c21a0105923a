"""Value types shared by the exam engine components."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

CanonicalAnswer = Union[str, List[str]]


class Purpose(str, Enum):
    QUALIFICATION = "qualification"
    PRACTICE = "practice"


@dataclass(slots=True)
class ExamSession:
    """Decoded exam token payload. Exists only inside the signed token."""

    subject: Optional[str]
    purpose: Purpose
    # question id -> canonical answer, in the order shown to the client
    answer_key: Dict[int, CanonicalAnswer]
    issued_at: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    @property
    def question_ids(self) -> List[int]:
        return list(self.answer_key)


@dataclass(slots=True, frozen=True)
class GradeResult:
    correct_count: int
    total_count: int
    percentage: float
    passed: Optional[bool] = None
    # per question outcome, keyed like the answer key
    breakdown: Dict[int, bool] = field(default_factory=dict, compare=False)


def to_epoch(moment: Union[datetime, int, float, None]) -> int:
    """Normalize a clock reading to whole UTC epoch seconds."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return int(moment.timestamp())
    return int(moment)
