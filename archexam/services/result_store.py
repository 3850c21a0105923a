"""
Durable grading outcomes.

Qualification results are kept one row per user and written with a single
``INSERT ... ON CONFLICT DO UPDATE`` so concurrent submissions cannot lose
an update or leave two rows behind; whichever commits last wins. Practice
results are append-only and feed the public leaderboard.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from archexam.core.errors import PersistenceFailed, RecordRejected
from archexam.models.exam import GradeResult
from archexam.models.orm import PracticeRecord, QualificationRecord, User
from archexam.models.schemas import LeaderboardRow

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def mark_user_verified(db: Session, user_id: str) -> None:
    """Default verification hook: sets ``users.is_verified``. Never clears it."""
    updated = db.execute(update(User).where(User.id == user_id).values(is_verified=True)).rowcount
    if not updated:
        logger.warning("Qualification passed for unknown user %s; nothing to verify", user_id)


class ResultStore:
    def __init__(
        self,
        on_verified: Callable[[Session, str], None] = mark_user_verified,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.on_verified = on_verified
        self.clock = clock

    def record_qualification(self, db: Session, user_id: str, result: GradeResult) -> QualificationRecord:
        if result.passed is None:
            raise ValueError("Qualification results must carry a pass flag")
        dialect = db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"No atomic upsert for dialect {dialect!r}")

        values = {
            "user_id": user_id,
            "score": result.percentage,
            "correct_count": result.correct_count,
            "total_questions": result.total_count,
            "passed": result.passed,
            "created_at": self.clock(),
        }
        stmt = insert(QualificationRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[QualificationRecord.user_id],
            set_={name: stmt.excluded[name] for name in values if name != "user_id"},
        ).returning(QualificationRecord)

        try:
            record = db.scalars(stmt, execution_options={"populate_existing": True}).one()
            if result.passed:
                self.on_verified(db, user_id)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.error("Database rejected qualification record for user %s: %s", user_id, exc.orig)
            raise RecordRejected() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to upsert qualification record for user %s", user_id)
            raise PersistenceFailed() from exc
        logger.info("Qualification recorded for user %s: %.2f%% passed=%s", user_id, result.percentage, result.passed)
        return record

    def record_practice(self, db: Session, user_id: str, result: GradeResult) -> PracticeRecord:
        entry = PracticeRecord(
            user_id=user_id,
            score=result.percentage,
            correct_count=result.correct_count,
            total_questions=result.total_count,
            created_at=self.clock(),
        )
        try:
            db.add(entry)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.error("Database rejected practice record for user %s: %s", user_id, exc.orig)
            raise RecordRejected() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to insert practice record for user %s", user_id)
            raise PersistenceFailed() from exc
        return entry

    def get_qualification(self, db: Session, user_id: str) -> Optional[QualificationRecord]:
        return db.scalar(select(QualificationRecord).where(QualificationRecord.user_id == user_id))

    def leaderboard(self, db: Session, limit: int) -> List[LeaderboardRow]:
        stmt = (
            select(func.coalesce(User.username, PracticeRecord.user_id), PracticeRecord.score, PracticeRecord.created_at)
            .join(User, User.id == PracticeRecord.user_id, isouter=True)
            .order_by(PracticeRecord.score.desc(), PracticeRecord.created_at.asc(), PracticeRecord.id.asc())
            .limit(limit)
        )
        try:
            rows = db.execute(stmt).all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read leaderboard")
            raise PersistenceFailed("The leaderboard is unavailable right now.") from exc
        return [LeaderboardRow(username=r[0], score=float(r[1]), created_at=r[2]) for r in rows]
