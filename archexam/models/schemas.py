from datetime import datetime
from typing import Dict, List, Optional, Union, Literal
from pydantic import BaseModel, Field, constr

Answer = Union[str, List[str]]

# well above a 20 question answer key
MAX_EXAM_TOKEN_LENGTH = 16384

class QuestionView(BaseModel):
  """Client-safe projection of a question: no answer, no analysis."""
  id: int
  type: Literal["single", "multiple"]
  content: str
  options: List[str]

class GeneratedExam(BaseModel):
  questions: List[QuestionView]
  exam_token: str
  expires_in: int

class SubmitExam(BaseModel):
  exam_token: constr(min_length=1, max_length=MAX_EXAM_TOKEN_LENGTH)
  answers: Dict[str, Answer] = Field(default_factory=dict)

class QualificationOutcome(BaseModel):
  score: float
  correct_count: int
  total_questions: int
  passed: bool
  message: str

class PracticeOutcome(BaseModel):
  score: float
  correct_count: int
  total_questions: int
  message: str

class LeaderboardRow(BaseModel):
  username: str
  score: float
  created_at: datetime

class QuestionCreate(BaseModel):
  question_type: Literal["single", "multiple"]
  content: constr(min_length=1)
  options: List[str] = Field(min_length=2)
  answer: Answer
  analysis: Optional[str] = None

class QuestionCreated(BaseModel):
  id: int
  question_type: str
