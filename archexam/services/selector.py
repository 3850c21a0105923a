import random
from typing import Dict, List, Optional, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import select
from archexam.core.errors import InsufficientQuestions
from archexam.models.exam import CanonicalAnswer
from archexam.models.orm import Question
from archexam.models.schemas import QuestionView
from archexam.services.grader import canonical_answer

def load_bank(db: Session, kind: Optional[str] = None) -> List[Question]:
    stmt = select(Question).order_by(Question.id)
    if kind is not None:
        stmt = stmt.where(Question.question_type == kind)
    return list(db.scalars(stmt).all())

def to_view(q: Question) -> QuestionView:
    return QuestionView(id=q.id, type=q.question_type, content=q.content, options=list(q.options or []))

def answer_key(questions: Sequence[Question]) -> Dict[int, CanonicalAnswer]:
    return {q.id: canonical_answer(q.question_type, q.answer) for q in questions}

class QuestionSelector:
    """Uniform draw without replacement. Uses the OS entropy source so the
    draw cannot be replayed from a seed."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.SystemRandom()

    def select(self, bank: Sequence[Question], count: int, kind: Optional[str] = None) -> List[Question]:
        if count < 0: raise ValueError("count must not be negative")
        pool = [q for q in bank if kind is None or q.question_type == kind]
        unique = list({q.id: q for q in pool}.values())
        if len(unique) < count:
            raise InsufficientQuestions(requested=count, available=len(unique), kind=kind)
        return self.rng.sample(unique, count)

    def select_by_kind(self, bank: Sequence[Question], quotas: Dict[str, int]) -> List[Question]:
        picked: List[Question] = []
        for kind, count in quotas.items():
            if count:
                picked.extend(self.select(bank, count, kind=kind))
        return picked
