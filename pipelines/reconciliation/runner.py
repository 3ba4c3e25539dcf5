"""
Subject Email Reconciliation Runner.

Responsibilities:
- Look up each local record in the LMS, resolve it, write stale fields.
- Aggregate a run report (total, updated, not found, skipped, errors).

Non-Responsibilities:
- No LMS session handling (the lookup arrives authenticated).
- No retries; a failed lookup is reported, not repeated.

Invariant:
One record's failure never aborts the batch. Every write is independent
and durable once issued; the report is folded in record order, so a pooled
run reports exactly what a sequential run would.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from gradeviewer.config import ReconciliationConfig
from gradeviewer.logger import StructuredLogger, get_logger
from gradeviewer.models import ExternalCandidate, GradeRecord, LookupQuery
from gradeviewer.normalize import trimmed
from pipelines.entity_resolution.features import name_similarity
from pipelines.entity_resolution.resolver import DEFAULT_MATCH_THRESHOLD, resolve_identity
from pipelines.entity_resolution.scoring import NameScorer

from .update_decider import record_update

IdentityLookup = Callable[[LookupQuery], List[ExternalCandidate]]

UPDATED = "updated"
UNCHANGED = "unchanged"
NOT_FOUND = "not_found"
SKIPPED = "skipped"
ERROR = "error"

PROGRESS_EVERY = 20


@dataclass(frozen=True)
class RecordError:
    key: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "message": self.message}


@dataclass
class ReconciliationReport:
    total: int = 0
    updated: int = 0
    not_found: int = 0
    skipped: int = 0
    unchanged: int = 0
    errors: List[RecordError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "updated": self.updated,
            "notFound": self.not_found,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class RecordOutcome:
    key: str
    status: str
    message: str = ""
    error_type: str = ""


class ReconciliationRunner:
    """
    Reconcile grade records against an identity lookup.

    Sequential by default. max_workers > 1 runs lookups on a bounded thread
    pool; the lookup must then be safe to call from several threads with a
    shared, read-only session.
    """

    def __init__(
        self,
        lookup: IdentityLookup,
        store,
        max_workers: int = 1,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        scorer: NameScorer = name_similarity,
        logger: Optional[StructuredLogger] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.lookup = lookup
        self.store = store
        self.max_workers = max_workers
        self.threshold = threshold
        self.scorer = scorer
        self.logger = logger or get_logger()
        self.source = getattr(lookup, "source", "lms")

    def process(self, record: GradeRecord) -> RecordOutcome:
        """Resolve and, if needed, update a single record. Never raises."""
        key = trimmed(record.student_number)
        if not key:
            return RecordOutcome(key=record.id, status=SKIPPED, message="no student number")

        try:
            candidates = self.lookup(LookupQuery(search_text=key, id_hint=key))
            resolution = resolve_identity(record, candidates, self.scorer, self.threshold)
            self.logger.debug(
                "Resolved record",
                student_number=key,
                state=resolution.state.value,
                candidates=len(candidates),
                similarity=resolution.similarity,
            )
            if not resolution.matched:
                return RecordOutcome(key=key, status=NOT_FOUND)

            fields = record_update(record, resolution.candidate)
            if fields is None:
                return RecordOutcome(key=key, status=UNCHANGED)

            self.store.write(record.id, fields)
            return RecordOutcome(key=key, status=UPDATED)
        except Exception as e:
            return RecordOutcome(key=key, status=ERROR, message=str(e), error_type=type(e).__name__)

    def _outcomes(self, records: List[GradeRecord]) -> Iterable[RecordOutcome]:
        if self.max_workers == 1 or len(records) <= 1:
            return (self.process(r) for r in records)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.process, records))

    def run(self, records: Iterable[GradeRecord]) -> ReconciliationReport:
        records = list(records)
        report = ReconciliationReport(total=len(records))

        for i, outcome in enumerate(self._outcomes(records), start=1):
            self._fold(report, outcome)
            if i % PROGRESS_EVERY == 0:
                self.logger.info(
                    f"Progress: {i}/{report.total} processed",
                    updated=report.updated,
                    not_found=report.not_found,
                    errors=len(report.errors),
                )
        return report

    def _fold(self, report: ReconciliationReport, outcome: RecordOutcome) -> None:
        if outcome.status == SKIPPED:
            report.skipped += 1
            self.logger.debug("Skipping record without student number", record_id=outcome.key)
            return

        self.logger.record_lookup_attempt(self.source)
        if outcome.status == ERROR:
            report.errors.append(RecordError(outcome.key, outcome.message))
            self.logger.record_lookup_failure(self.source, outcome.error_type or "Exception")
            self.logger.error("Record reconciliation failed", student_number=outcome.key, error=outcome.message)
            return

        self.logger.record_lookup_success(self.source)
        if outcome.status == NOT_FOUND:
            report.not_found += 1
            self.logger.record_not_found()
        elif outcome.status == UPDATED:
            report.updated += 1
            self.logger.record_update()
        else:
            report.unchanged += 1


def reconcile_subject_emails(
    subject_id: str,
    records: Optional[Iterable[GradeRecord]],
    lookup: IdentityLookup,
    store,
    config: Optional[ReconciliationConfig] = None,
    logger: Optional[StructuredLogger] = None,
) -> ReconciliationReport:
    """
    Refresh email and name of every record in a subject from the LMS.

    Args:
        subject_id: Subject whose records are reconciled
        records: Records to reconcile (default: store.read_by_subject(subject_id))
        lookup: Identity lookup, already authenticated
        store: Record store with write(record_id, fields)
        config: Worker count and match threshold (default: sequential, 0.3)

    Returns:
        ReconciliationReport
    """
    logger = logger or get_logger()
    if records is None:
        records = store.read_by_subject(subject_id)
    records = list(records)

    runner = ReconciliationRunner(
        lookup,
        store,
        max_workers=config.max_workers if config else 1,
        threshold=config.match_threshold if config else DEFAULT_MATCH_THRESHOLD,
        logger=logger,
    )

    logger.info("Starting subject email sync", subject_id=subject_id, records=len(records), workers=runner.max_workers)
    started = time.monotonic()
    report = runner.run(records)
    logger.info(
        "Subject email sync complete",
        subject_id=subject_id,
        duration_ms=int((time.monotonic() - started) * 1000),
        **{k: v for k, v in report.to_dict().items() if k != "errors"},
        errors=len(report.errors),
    )
    return report
