import logging
from typing import List, Optional

from sqlalchemy import select

from schemapilot.core.workflow import RunReport
from schemapilot.db.models import RunRecord
from schemapilot.db.session import Base, make_engine, make_session_factory

log = logging.getLogger(__name__)


class RunLedger:
    """Persists finished runs so ``status`` can report on the last one."""

    def __init__(self, url: str):
        self.engine = make_engine(url)
        self._session_factory = make_session_factory(self.engine)
        self._ready = False

    def _ensure_tables(self) -> None:
        if not self._ready:
            Base.metadata.create_all(self.engine)
            self._ready = True

    def record(self, report: RunReport) -> RunRecord:
        self._ensure_tables()
        record = RunRecord(
            id=report.run_id,
            request=report.request,
            status=report.status.value,
            dry_run=report.dry_run,
            steps_used=report.steps_used,
            budget=report.budget,
            final_answer=report.final_answer,
            progress=[{"entity": name, "stages": stages} for name, stages in report.progress_rows()],
        )
        with self._session_factory() as db:
            db.add(record)
            db.commit()
        log.debug("Recorded run %s", report.run_id, extra={"run_id": report.run_id})
        return record

    def latest(self) -> Optional[RunRecord]:
        self._ensure_tables()
        with self._session_factory() as db:
            return db.scalars(
                select(RunRecord).order_by(RunRecord.created_at.desc(), RunRecord.id.desc()).limit(1)
            ).first()

    def recent(self, limit: int = 10) -> List[RunRecord]:
        self._ensure_tables()
        with self._session_factory() as db:
            return list(db.scalars(
                select(RunRecord).order_by(RunRecord.created_at.desc(), RunRecord.id.desc()).limit(limit)
            ))
