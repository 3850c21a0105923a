from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from archexam.api.deps import get_clock, get_exam_service
from archexam.core.auth import get_current_user, TokenData
from archexam.core.database import get_db
from archexam.models.schemas import GeneratedExam, QualificationOutcome, SubmitExam
from archexam.services.exam_service import ExamService

router = APIRouter()

@router.get("", response_model=GeneratedExam)
def generate_exam(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db),
                  service: ExamService = Depends(get_exam_service), now: datetime = Depends(get_clock)):
    return service.generate_qualification(db, user.sub, now=now)

@router.post("/submit", response_model=QualificationOutcome)
def submit_exam(payload: SubmitExam, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db),
                service: ExamService = Depends(get_exam_service), now: datetime = Depends(get_clock)):
    return service.submit_qualification(db, user.sub, payload.exam_token, payload.answers, now=now)
