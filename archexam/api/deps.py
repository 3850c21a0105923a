from datetime import datetime, timezone
from functools import lru_cache
from archexam.core.config import get_settings
from archexam.services.exam_service import ExamService

@lru_cache()
def get_exam_service() -> ExamService:
    return ExamService(get_settings())

def get_clock() -> datetime:
    return datetime.now(timezone.utc)
