from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from archexam.api.deps import get_clock, get_exam_service
from archexam.core.auth import get_current_user, TokenData
from archexam.core.database import get_db
from archexam.models.schemas import GeneratedExam, LeaderboardRow, PracticeOutcome, SubmitExam
from archexam.services.exam_service import ExamService

router = APIRouter()

@router.get("/generate", response_model=GeneratedExam)
def generate_paper(db: Session = Depends(get_db), service: ExamService = Depends(get_exam_service),
                   now: datetime = Depends(get_clock)):
    return service.generate_practice(db, now=now)

@router.post("/submit", response_model=PracticeOutcome)
def submit_paper(payload: SubmitExam, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db),
                 service: ExamService = Depends(get_exam_service), now: datetime = Depends(get_clock)):
    return service.submit_practice(db, user.sub, payload.exam_token, payload.answers, now=now)

@router.get("/leaderboard", response_model=List[LeaderboardRow])
def get_leaderboard(db: Session = Depends(get_db), service: ExamService = Depends(get_exam_service)):
    return service.leaderboard(db)
