"""
Qualification and practice exam flows.

generate: draw questions -> sign the answer key into a token -> hand out the
answer-free view. submit: verify the token -> grade -> persist. Only the
persistence step touches shared state, and only it is retried.
"""
import logging
from typing import Any, Callable, List, Mapping, Optional, TypeVar

from sqlalchemy.orm import Session
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from archexam.core.config import Settings
from archexam.core.errors import PersistenceFailed, PurposeMismatch, SubjectMismatch
from archexam.models.exam import ExamSession, Purpose
from archexam.models.orm import MULTIPLE, SINGLE
from archexam.models.schemas import GeneratedExam, LeaderboardRow, PracticeOutcome, QualificationOutcome
from archexam.services.grader import Grader, GradingPolicy
from archexam.services.result_store import ResultStore
from archexam.services.selector import QuestionSelector, answer_key, load_bank, to_view
from archexam.services.session_codec import Clock, SessionCodec

logger = logging.getLogger(__name__)

T = TypeVar("T")

PASSED_MESSAGE = "Verification successful!"
FAILED_MESSAGE = "Score too low. Try again."
PRACTICE_MESSAGE = "Exam submitted successfully"


class ExamService:
    def __init__(
        self,
        settings: Settings,
        codec: Optional[SessionCodec] = None,
        selector: Optional[QuestionSelector] = None,
        grader: Optional[Grader] = None,
        store: Optional[ResultStore] = None,
    ):
        self.settings = settings
        self.codec = codec or SessionCodec(
            settings.EXAM_SIGNING_KEY.get_secret_value(),
            [k.get_secret_value() for k in settings.EXAM_SIGNING_KEYS_PREVIOUS],
        )
        self.selector = selector or QuestionSelector()
        self.grader = grader or Grader(
            GradingPolicy(case_sensitive=settings.GRADING_CASE_SENSITIVE, trim_whitespace=settings.GRADING_TRIM_WHITESPACE),
            pass_percentage=settings.QUALIFICATION_PASS_PERCENTAGE,
            decimals=settings.SCORE_DECIMALS,
        )
        self.store = store or ResultStore()

    # ---------------------------------------------------------------- generate

    def generate_qualification(self, db: Session, subject: str, now: Clock = None) -> GeneratedExam:
        questions = self.selector.select(load_bank(db), self.settings.QUALIFICATION_QUESTION_COUNT)
        return self._issue(questions, subject, Purpose.QUALIFICATION, now)

    def generate_practice(self, db: Session, now: Clock = None) -> GeneratedExam:
        quotas = {SINGLE: self.settings.PRACTICE_SINGLE_COUNT, MULTIPLE: self.settings.PRACTICE_MULTIPLE_COUNT}
        questions = self.selector.select_by_kind(load_bank(db), quotas)
        return self._issue(questions, None, Purpose.PRACTICE, now)

    def _issue(self, questions: List[Any], subject: Optional[str], purpose: Purpose, now: Clock) -> GeneratedExam:
        ttl = self.settings.EXAM_TOKEN_TTL_SECONDS
        token = self.codec.encode(answer_key(questions), subject, purpose, ttl, now=now)
        logger.info("Issued %s exam with %d questions (subject=%s)", purpose.value, len(questions), subject)
        return GeneratedExam(questions=[to_view(q) for q in questions], exam_token=token, expires_in=ttl)

    # ------------------------------------------------------------------ submit

    def verify(self, token: str, purpose: Purpose, subject: Optional[str], now: Clock = None) -> ExamSession:
        session = self.codec.decode(token, now)
        if session.purpose != purpose:
            raise PurposeMismatch()
        if session.subject is not None and session.subject != subject:
            raise SubjectMismatch()
        return session

    def submit_qualification(self, db: Session, subject: str, token: str, answers: Mapping[str, Any], now: Clock = None) -> QualificationOutcome:
        session = self.verify(token, Purpose.QUALIFICATION, subject, now)
        result = self.grader.grade(session, answers)
        self._persist(lambda: self.store.record_qualification(db, subject, result))
        return QualificationOutcome(
            score=result.percentage,
            correct_count=result.correct_count,
            total_questions=result.total_count,
            passed=bool(result.passed),
            message=PASSED_MESSAGE if result.passed else FAILED_MESSAGE,
        )

    def submit_practice(self, db: Session, subject: str, token: str, answers: Mapping[str, Any], now: Clock = None) -> PracticeOutcome:
        session = self.verify(token, Purpose.PRACTICE, subject, now)
        result = self.grader.grade(session, answers)
        self._persist(lambda: self.store.record_practice(db, subject, result))
        return PracticeOutcome(
            score=result.percentage,
            correct_count=result.correct_count,
            total_questions=result.total_count,
            message=PRACTICE_MESSAGE,
        )

    def _persist(self, write: Callable[[], T]) -> T:
        # the grade is already computed; only the write is repeated
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.PERSIST_RETRY_ATTEMPTS),
            wait=wait_fixed(self.settings.PERSIST_RETRY_WAIT_SECONDS),
            retry=retry_if_exception_type(PersistenceFailed),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(write)

    # ------------------------------------------------------------- leaderboard

    def leaderboard(self, db: Session) -> List[LeaderboardRow]:
        return self.store.leaderboard(db, self.settings.LEADERBOARD_LIMIT)

