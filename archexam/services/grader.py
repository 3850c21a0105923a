"""
Exact-match grading against the answer key carried by a verified exam session.

Grading is pure: the same session and submission always produce the same
``GradeResult``, so a result computed once can be persisted again on retry
without re-grading.
"""
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional

from archexam.models.exam import CanonicalAnswer, ExamSession, GradeResult, Purpose
from archexam.models.orm import MULTIPLE

ANSWER_SEPARATOR = ","


def split_choices(raw: Any) -> Optional[List[str]]:
    """Accept "A,B" or ["A", "B"]; anything else is not a choice list."""
    if isinstance(raw, str):
        return raw.split(ANSWER_SEPARATOR)
    if isinstance(raw, (list, tuple, set, frozenset)):
        if not all(isinstance(item, str) for item in raw):
            return None
        return list(raw)
    return None


def canonical_answer(kind: str, raw: Any) -> CanonicalAnswer:
    """Canonical answer-key encoding for a bank question.

    Single choice keeps the option value, multiple choice becomes a sorted
    duplicate-free list so key order never depends on how it was authored.
    """
    if kind == MULTIPLE:
        choices = split_choices(raw) or []
        return sorted({c.strip() for c in choices if c.strip()})
    return str(raw).strip()


@dataclass(frozen=True)
class GradingPolicy:
    case_sensitive: bool = True
    trim_whitespace: bool = True

    def normalize(self, value: str) -> str:
        if self.trim_whitespace:
            value = value.strip()
        if not self.case_sensitive:
            value = value.casefold()
        return value

    def normalize_set(self, values: Iterable[str]) -> FrozenSet[str]:
        normalized = (self.normalize(v) for v in values)
        return frozenset(v for v in normalized if v)


class Grader:
    def __init__(self, policy: GradingPolicy, pass_percentage: float, decimals: int = 2):
        self.policy = policy
        self.pass_percentage = pass_percentage
        self.decimals = decimals

    def is_correct(self, expected: CanonicalAnswer, submitted: Any) -> bool:
        if submitted is None:
            return False
        if isinstance(expected, list):
            choices = split_choices(submitted)
            if choices is None:
                return False
            return self.policy.normalize_set(choices) == self.policy.normalize_set(expected)
        if not isinstance(submitted, str):
            return False
        return self.policy.normalize(submitted) == self.policy.normalize(expected)

    def grade(self, session: ExamSession, answers: Mapping[Any, Any]) -> GradeResult:
        # only ids from the key count; unknown ids in the submission are ignored
        breakdown = {}
        for qid, expected in session.answer_key.items():
            submitted = answers.get(str(qid), answers.get(qid))
            breakdown[qid] = self.is_correct(expected, submitted)

        total = len(session.answer_key)
        correct = sum(breakdown.values())
        percentage = round(correct / total * 100, self.decimals) if total else 0.0
        passed = None
        if session.purpose == Purpose.QUALIFICATION:
            passed = percentage >= self.pass_percentage
        return GradeResult(correct_count=correct, total_count=total, percentage=percentage, passed=passed, breakdown=breakdown)
