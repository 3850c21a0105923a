"""
Exam engine error taxonomy and its HTTP rendering.

Every error carries the status code, a stable ``error_type`` the client can
switch on, and a human readable message. Token rejections share a base class
so callers can tell "the session is unusable" apart from storage failures.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ExamError(Exception):
    status_code: int = 400
    error_type: str = "exam_error"
    default_message: str = "The exam request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InsufficientQuestions(ExamError):
    status_code = 409
    error_type = "insufficient_questions"
    default_message = "Not enough questions are available to build an exam right now."

    def __init__(self, requested: int, available: int, kind: str | None = None):
        self.requested = requested
        self.available = available
        self.kind = kind
        scope = f" {kind}-choice" if kind else ""
        super().__init__(f"Requested {requested}{scope} questions but only {available} are available.")


class TokenRejected(ExamError):
    """The exam token cannot be used. Never retried."""
    error_type = "token_rejected"


class Malformed(TokenRejected):
    error_type = "token_malformed"
    default_message = "The exam token is not readable. Please restart the exam."


class InvalidSignature(TokenRejected):
    error_type = "token_invalid"
    default_message = "The exam token failed verification and looks tampered with. Please restart the exam."


class Expired(TokenRejected):
    error_type = "token_expired"
    default_message = "Your time for this exam ran out. Please start a new one."


class PurposeMismatch(TokenRejected):
    error_type = "token_wrong_purpose"
    default_message = "This exam token belongs to a different kind of exam."


class SubjectMismatch(TokenRejected):
    status_code = 403
    error_type = "token_wrong_subject"
    default_message = "This exam was issued to a different user."


class PersistenceFailed(ExamError):
    status_code = 503
    error_type = "persistence_failed"
    default_message = "Your result could not be saved. Please try again later."


class RecordRejected(ExamError):
    """The database refused the row itself. Retrying cannot help."""
    status_code = 409
    error_type = "record_rejected"
    default_message = "Your result could not be recorded for this account."


class QuestionInvalid(ExamError):
    status_code = 422
    error_type = "question_invalid"
    default_message = "The question is not valid."


def error_body(message: str, error_type: str, status_code: int) -> dict:
    return {"error": {"message": message, "type": error_type, "status_code": status_code}}


async def exam_error_handler(request: Request, exc: ExamError) -> JSONResponse:
    if isinstance(exc, (PersistenceFailed, RecordRejected)):
        logger.error("Persistence failure on %s: %s", request.url.path, exc.message)
    else:
        logger.info("Rejected %s: %s", request.url.path, exc.error_type)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.error_type, exc.status_code))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExamError, exam_error_handler)
