import logging
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from archexam.core.auth import require_roles, TokenData
from archexam.core.database import get_db
from archexam.core.errors import QuestionInvalid
from archexam.models.orm import Question, MULTIPLE
from archexam.models.schemas import QuestionCreate, QuestionCreated
from archexam.services.grader import ANSWER_SEPARATOR, canonical_answer, split_choices

logger = logging.getLogger(__name__)

router = APIRouter()

def _clean_options(options: List[str], kind: str) -> List[str]:
    cleaned = [o.strip() for o in options]
    if any(not o for o in cleaned):
        raise QuestionInvalid("Options must not be blank.")
    if len(set(cleaned)) != len(cleaned):
        raise QuestionInvalid("Options must be distinct.")
    if kind == MULTIPLE and any(ANSWER_SEPARATOR in o for o in cleaned):
        raise QuestionInvalid(f"Multiple-choice options must not contain {ANSWER_SEPARATOR!r}.")
    return cleaned

def _stored_answer(payload: QuestionCreate, options: List[str]) -> str:
    if payload.question_type == MULTIPLE:
        choices = canonical_answer(MULTIPLE, payload.answer)
        if not choices:
            raise QuestionInvalid("A multiple-choice question needs at least one correct option.")
        missing = [c for c in choices if c not in options]
        stored = ANSWER_SEPARATOR.join(choices)
    else:
        answer = payload.answer
        if not isinstance(answer, str):
            choices = split_choices(answer) or []
            if len(choices) != 1:
                raise QuestionInvalid("A single-choice question has exactly one correct option.")
            answer = choices[0]
        stored = canonical_answer(payload.question_type, answer)
        missing = [] if stored in options else [stored]
    if missing:
        raise QuestionInvalid(f"Answer values not among the options: {', '.join(missing)}")
    return stored

@router.post("/questions", response_model=QuestionCreated, status_code=201, dependencies=[Depends(require_roles("author","admin"))])
def create_question(payload: QuestionCreate, user: TokenData = Depends(require_roles("author","admin")), db: Session = Depends(get_db)):
    options = _clean_options(payload.options, payload.question_type)
    q = Question(question_type=payload.question_type, content=payload.content, options=options,
                 answer=_stored_answer(payload, options), analysis=payload.analysis)
    db.add(q); db.commit()
    logger.info("Question %s (%s) created by %s", q.id, q.question_type, user.sub)
    return QuestionCreated(id=q.id, question_type=q.question_type)
