"""
app/scheduler/orchestrator.py

APScheduler-backed orchestrator for recurring crawl jobs.

Run state machine (one call to ``execute_job``)
------------------------------------------------
  1. Load the job; inactive jobs are a no-op.
  2. Claim it (``idle|completed|failed -> running``) and open a JobRun.
  3. Load the credential, if any, still sealed; the auth adapter opens it.
  4. Crawl with the job's template and option overrides.
  5. Version every scraped page and tally created/updated/changed counts.
  6. Success: JobRun ``completed``; job ``completed``.
  7. Any exception in 3-5: JobRun ``failed``; job ``failed``.
In both outcomes ``next_run_at`` is recomputed from the cron expression.

Lifecycle
----------
Build one ``CrawlOrchestrator`` in the composition root, call
``initialize()`` on boot and ``shutdown()`` on exit. ``shutdown`` is safe to
call more than once and from an ``atexit`` handler.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session, sessionmaker

from app.config import CrawlSettings, SchedulerSettings, get_crawl_settings, get_scheduler_settings
from app.crawling.auth.config import SealedCredential
from app.crawling.auth.crypto import CredentialCipher
from app.crawling.cancellation import CancellationToken
from app.crawling.engine import CrawlEngine
from app.crawling.errors import CrawlCancelledError
from app.crawling.logging_utils import log_event
from app.domain.crawling import CrawlResult
from app.scheduler.cron import InvalidCronExpressionError, build_trigger, next_run_time
from app.scheduler.planning import CrawlPlan, build_crawl_plan
from app.services.embedding_service import DocumentEmbedder
from app.versioning.versioner import DocumentVersioner, VersionAction
from db.models.crawl_job import CrawlJob, CrawlJobStatus
from db.models.job_run import JobRunStatus
from db.repositories.crawl_job_repository import CrawlJobRepository
from db.repositories.credential_repository import CredentialRepository
from db.repositories.document_repository import DocumentRepository
from db.repositories.errors import JobAlreadyRunningError, JobNotFoundError
from db.repositories.job_run_repository import JobRunRepository, RunTallies
from db.session import session_scope

logger = logging.getLogger(__name__)

MANUAL_RUN_SUFFIX = ":manual"


@dataclass(frozen=True)
class SchedulerStatus:
    is_initialized: bool
    is_running: bool
    scheduled_jobs_count: int
    scheduled_job_ids: list[str]
    active_run_job_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class JobRunOutcome:
    run_id: uuid.UUID
    job_id: uuid.UUID
    status: str
    tallies: RunTallies
    error_message: str | None = None
    next_run_at: datetime | None = None


@dataclass(frozen=True)
class _JobSnapshot:
    """Plain copy of the job fields a run needs, detached from any session."""

    id: uuid.UUID
    tenant_id: str
    name: str
    base_url: str
    template_id: str | None
    scrape_children: bool
    max_depth: int | None
    max_pages: int | None
    include_patterns: list[str]
    exclude_patterns: list[str]
    options: dict[str, Any]
    credential_id: uuid.UUID | None
    schedule: str | None

    @classmethod
    def of(cls, job: CrawlJob) -> "_JobSnapshot":
        return cls(
            id=job.id,
            tenant_id=job.tenant_id,
            name=job.name,
            base_url=job.base_url,
            template_id=job.template_id,
            scrape_children=job.scrape_children,
            max_depth=job.max_depth,
            max_pages=job.max_pages,
            include_patterns=list(job.include_patterns or []),
            exclude_patterns=list(job.exclude_patterns or []),
            options=dict(job.options or {}),
            credential_id=job.credential_id,
            schedule=job.schedule,
        )


@dataclass
class _RunProgress:
    """Counters filled in as a run advances, so a failed run keeps its partial tallies."""

    urls_processed: int = 0
    urls_successful: int = 0
    urls_failed: int = 0
    documents_created: int = 0
    documents_updated: int = 0

    def tallies(self) -> RunTallies:
        return RunTallies(
            urls_processed=self.urls_processed,
            urls_successful=self.urls_successful,
            urls_failed=self.urls_failed,
            documents_created=self.documents_created,
            documents_updated=self.documents_updated,
            changes_detected=self.documents_created + self.documents_updated,
        )


class CrawlOrchestrator:
    """
    Owns the trigger registry and the per-job run state machine.

    At most one run per job is in flight: an in-process registry of
    cancellation tokens guards this process, and a compare-and-set claim on
    ``crawl_jobs.status`` guards across processes.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        cipher: CredentialCipher | None,
        engine: CrawlEngine | None = None,
        embedder: DocumentEmbedder | None = None,
        scheduler: BackgroundScheduler | None = None,
        crawl_settings: CrawlSettings | None = None,
        scheduler_settings: SchedulerSettings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher
        self._crawl_settings = crawl_settings or get_crawl_settings()
        self._settings = scheduler_settings or get_scheduler_settings()
        self._engine = engine or CrawlEngine(settings=self._crawl_settings)
        self._embedder = embedder
        self._versioner = DocumentVersioner(threshold=self._settings.change_threshold_percent)
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._lock = threading.Lock()
        self._active_runs: dict[uuid.UUID, CancellationToken] = {}
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, *, start: bool = True) -> int:
        """
        Recover stale runs, register a trigger per active job and start the
        scheduler. Returns the number of jobs scheduled.
        """
        if self._initialized:
            return len(self._scheduler.get_jobs())

        if self._settings.recover_stale_runs:
            self._recover_stale_runs()

        scheduled = self._register_active_jobs()
        if start and not self._scheduler.running:
            self._scheduler.start()
        self._initialized = True
        logger.info("Scheduler: initialized with %d scheduled crawl job(s)", scheduled)
        return scheduled

    def shutdown(self, *, wait: bool = False) -> None:
        """Stop all triggers, cancel in-flight runs and mark uninitialized."""
        with self._lock:
            tokens = list(self._active_runs.values())
        for token in tokens:
            token.cancel("Scheduler shutting down")

        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        if self._initialized:
            logger.info("Scheduler: shut down")
        self._initialized = False

    def reload_jobs(self) -> int:
        self._scheduler.remove_all_jobs()
        scheduled = self._register_active_jobs()
        logger.info("Scheduler: reloaded %d crawl job(s)", scheduled)
        return scheduled

    def get_status(self) -> SchedulerStatus:
        job_ids = sorted(job.id for job in self._scheduler.get_jobs() if not job.id.endswith(MANUAL_RUN_SUFFIX))
        with self._lock:
            active = sorted(str(job_id) for job_id in self._active_runs)
        return SchedulerStatus(
            is_initialized=self._initialized,
            is_running=bool(self._scheduler.running),
            scheduled_jobs_count=len(job_ids),
            scheduled_job_ids=job_ids,
            active_run_job_ids=active,
        )

    # ------------------------------------------------------------------
    # Trigger registry
    # ------------------------------------------------------------------

    def schedule_job(self, job: CrawlJob) -> bool:
        """
        Register (or replace) the trigger for ``job``.

        Inactive jobs and jobs without a schedule are unscheduled. Invalid
        cron expressions are logged and skipped. Returns True when a trigger
        is registered.
        """
        if not job.is_active or not job.schedule:
            self.unschedule_job(job.id)
            return False

        try:
            trigger = build_trigger(job.schedule)
        except InvalidCronExpressionError as exc:
            self.unschedule_job(job.id)
            logger.warning("Scheduler: skipping job=%s invalid schedule: %s", job.id, exc)
            return False

        self._scheduler.add_job(
            self._run_scheduled,
            trigger=trigger,
            args=[job.id],
            id=str(job.id),
            name=f"Crawl {job.name}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self._settings.misfire_grace_seconds,
        )
        with session_scope(self._session_factory) as session:
            CrawlJobRepository(session).set_next_run(job_id=job.id, next_run_at=next_run_time(job.schedule))
        logger.info("Scheduler: scheduled job=%s cron=%r", job.id, job.schedule)
        return True

    def unschedule_job(self, job_id: uuid.UUID) -> bool:
        if self._scheduler.get_job(str(job_id)) is None:
            return False
        self._scheduler.remove_job(str(job_id))
        logger.info("Scheduler: unscheduled job=%s", job_id)
        return True

    def _register_active_jobs(self) -> int:
        with session_scope(self._session_factory) as session:
            jobs = CrawlJobRepository(session).list_schedulable()
        scheduled = 0
        for job in jobs:
            if self.schedule_job(job):
                scheduled += 1
        return scheduled

    def _recover_stale_runs(self) -> None:
        with session_scope(self._session_factory) as session:
            runs = JobRunRepository(session).recover_stale()
            jobs = CrawlJobRepository(session).recover_stale()
        if runs or jobs:
            logger.warning("Scheduler: recovered %d stale run(s) and %d stale job(s)", runs, jobs)

    def _run_scheduled(self, job_id: uuid.UUID) -> None:
        try:
            self.execute_job(job_id)
        except JobAlreadyRunningError:
            logger.info("Scheduler: job=%s still running, skipping trigger", job_id)
        except JobNotFoundError:
            logger.warning("Scheduler: job=%s no longer exists, unscheduling", job_id)
            self.unschedule_job(job_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def is_running(self, job_id: uuid.UUID) -> bool:
        with self._lock:
            return job_id in self._active_runs

    def trigger_now(self, job_id: uuid.UUID) -> None:
        """
        Queue an immediate run on the scheduler's worker pool.

        Raises JobAlreadyRunningError when a run is in flight in this process.
        """
        if self.is_running(job_id):
            raise JobAlreadyRunningError(f"Crawl job is already running: {job_id}")
        self._scheduler.add_job(
            self._run_scheduled,
            trigger="date",
            run_date=datetime.now(timezone.utc),
            args=[job_id],
            id=f"{job_id}{MANUAL_RUN_SUFFIX}",
            name="Manual crawl run",
            replace_existing=True,
            misfire_grace_time=None,
        )
        log_event(logger, logging.INFO, "job_run_queued", job_id=job_id)

    def cancel_run(self, job_id: uuid.UUID, reason: str = "Cancelled by operator") -> bool:
        with self._lock:
            token = self._active_runs.get(job_id)
        if token is None:
            return False
        token.cancel(reason)
        log_event(logger, logging.INFO, "job_run_cancel_requested", job_id=job_id, reason=reason)
        return True

    def execute_job(self, job_id: uuid.UUID) -> JobRunOutcome | None:
        """
        Run one crawl of ``job_id`` synchronously.

        Returns None for inactive jobs. Raises JobNotFoundError for unknown
        ids and JobAlreadyRunningError when another run holds the job.
        """
        with session_scope(self._session_factory) as session:
            job = CrawlJobRepository(session).get_job(job_id)
            if job is None:
                raise JobNotFoundError(f"Crawl job not found: {job_id}")
            if not job.is_active:
                log_event(logger, logging.INFO, "job_run_skipped_inactive", job_id=job_id)
                return None
            snapshot = _JobSnapshot.of(job)

        token = CancellationToken()
        with self._lock:
            if job_id in self._active_runs:
                raise JobAlreadyRunningError(f"Crawl job is already running: {job_id}")
            self._active_runs[job_id] = token

        try:
            run_id = self._claim(snapshot)
        except Exception:
            with self._lock:
                self._active_runs.pop(job_id, None)
            raise

        log_event(logger, logging.INFO, "job_run_started", job_id=job_id, run_id=run_id, base_url=snapshot.base_url)
        try:
            return self._execute_claimed(snapshot, run_id, token)
        finally:
            with self._lock:
                self._active_runs.pop(job_id, None)

    def _claim(self, snapshot: _JobSnapshot) -> uuid.UUID:
        with session_scope(self._session_factory) as session:
            if not CrawlJobRepository(session).claim_for_run(job_id=snapshot.id):
                raise JobAlreadyRunningError(f"Crawl job is already running: {snapshot.id}")
            run = JobRunRepository(session).create_run(tenant_id=snapshot.tenant_id, job_id=snapshot.id)
            return run.id

    def _execute_claimed(
        self,
        snapshot: _JobSnapshot,
        run_id: uuid.UUID,
        token: CancellationToken,
    ) -> JobRunOutcome:
        progress = _RunProgress()
        logs: list[dict[str, Any]] = []
        run_metadata: dict[str, Any] | None = None
        status = JobRunStatus.COMPLETED
        error_message: str | None = None

        try:
            auth = self._sealed_credential(snapshot)
            plan = self._plan(snapshot)
            result = self._engine.crawl(
                plan.base_url,
                plan.options,
                plan.template,
                auth=auth,
                cancel_token=token,
            )
            progress.urls_processed = len(result.pages) + len(result.errors)
            progress.urls_successful = len(result.pages)
            progress.urls_failed = len(result.errors)
            logs = [entry.to_log() for entry in result.errors]
            run_metadata = self._run_metadata(plan, result)
            self._version_pages(snapshot, run_id, plan, result, token, progress)
            if result.summary.seed_error is not None:
                status = JobRunStatus.FAILED
                error_message = result.summary.seed_error
        except CrawlCancelledError as exc:
            status = JobRunStatus.FAILED
            error_message = f"Run cancelled: {exc}"
        except Exception as exc:  # noqa: BLE001
            status = JobRunStatus.FAILED
            error_message = str(exc) or exc.__class__.__name__
            logger.exception("Scheduler: job=%s run=%s failed", snapshot.id, run_id)

        tallies = progress.tallies()

        next_run_at = self._finish(snapshot, run_id, status, tallies, logs, run_metadata, error_message)
        log_event(
            logger,
            logging.INFO if status == JobRunStatus.COMPLETED else logging.WARNING,
            "job_run_finished",
            job_id=snapshot.id,
            run_id=run_id,
            status=status,
            error=error_message,
            **asdict(tallies),
        )
        return JobRunOutcome(
            run_id=run_id,
            job_id=snapshot.id,
            status=status,
            tallies=tallies,
            error_message=error_message,
            next_run_at=next_run_at,
        )

    def _sealed_credential(self, snapshot: _JobSnapshot) -> SealedCredential | None:
        if snapshot.credential_id is None:
            return None
        if self._cipher is None:
            raise RuntimeError("CREDENTIAL_ENCRYPTION_KEY is not configured; cannot use stored credentials.")
        with session_scope(self._session_factory) as session:
            credential = CredentialRepository(session).require_active(
                tenant_id=snapshot.tenant_id,
                credential_id=snapshot.credential_id,
            )
            return SealedCredential(
                kind=credential.auth_kind,
                domain=credential.domain,
                ciphertext=credential.encrypted_payload,
                cipher=self._cipher,
            )

    def _plan(self, snapshot: _JobSnapshot) -> CrawlPlan:
        return build_crawl_plan(
            settings=self._crawl_settings,
            base_url=snapshot.base_url,
            template_id=snapshot.template_id,
            scrape_children=snapshot.scrape_children,
            max_depth=snapshot.max_depth,
            max_pages=snapshot.max_pages,
            include_patterns=snapshot.include_patterns,
            exclude_patterns=snapshot.exclude_patterns,
            overrides=snapshot.options,
        )

    def _version_pages(
        self,
        snapshot: _JobSnapshot,
        run_id: uuid.UUID,
        plan: CrawlPlan,
        result: CrawlResult,
        token: CancellationToken,
        progress: _RunProgress,
    ) -> None:
        if plan.options.save_content:
            for page in result.pages:
                token.raise_if_cancelled()
                with session_scope(self._session_factory) as session:
                    outcome = self._versioner.apply(
                        session,
                        tenant_id=snapshot.tenant_id,
                        page=page,
                        job_id=snapshot.id,
                        job_run_id=run_id,
                    )
                    document_id = outcome.document.id
                if outcome.action == VersionAction.CREATED:
                    progress.documents_created += 1
                elif outcome.action == VersionAction.UPDATED:
                    progress.documents_updated += 1
                if outcome.wrote_version:
                    self._embed(document_id, page.title, page.content)

    def _embed(self, document_id: uuid.UUID, title: str, content: str) -> None:
        # The version row is already committed; a failure here only leaves
        # the embedding empty for a later backfill.
        if self._embedder is None:
            return
        try:
            vector = self._embedder.embed_document(title, content)
            if vector is None:
                return
            with session_scope(self._session_factory) as session:
                DocumentRepository(session).set_embedding(document_id=document_id, embedding=vector)
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "document_embedding_failed", document_id=document_id, error=str(exc))

    def _finish(
        self,
        snapshot: _JobSnapshot,
        run_id: uuid.UUID,
        status: str,
        tallies: RunTallies,
        logs: list[dict[str, Any]],
        run_metadata: dict[str, Any] | None,
        error_message: str | None,
    ) -> datetime | None:
        next_run_at = self._next_run(snapshot.schedule)
        with session_scope(self._session_factory) as session:
            runs = JobRunRepository(session)
            if status == JobRunStatus.COMPLETED:
                runs.mark_completed(run_id=run_id, tallies=tallies, logs=logs, run_metadata=run_metadata)
                job_status = CrawlJobStatus.COMPLETED
            else:
                runs.mark_failed(
                    run_id=run_id,
                    error_message=error_message or "Run failed",
                    logs=logs,
                    tallies=tallies,
                    run_metadata=run_metadata,
                )
                job_status = CrawlJobStatus.FAILED
            CrawlJobRepository(session).finish_run(
                job_id=snapshot.id,
                status=job_status,
                last_run_at=datetime.now(timezone.utc),
                next_run_at=next_run_at,
            )
        return next_run_at

    @staticmethod
    def _next_run(schedule: str | None) -> datetime | None:
        if not schedule:
            return None
        try:
            return next_run_time(schedule)
        except InvalidCronExpressionError as exc:
            logger.warning("Scheduler: cannot compute next run for schedule=%r: %s", schedule, exc)
            return None

    @staticmethod
    def _run_metadata(plan: CrawlPlan, result: CrawlResult) -> dict[str, Any]:
        summary = result.summary
        return {
            "template_id": plan.template_id,
            "content_type": summary.content_type,
            "total_pages": summary.total_pages,
            "total_words": summary.total_words,
            "average_words_per_page": summary.average_words_per_page,
            "skipped_duplicates": summary.skipped_duplicates,
            "authentication_attempts": asdict(summary.auth_attempts),
            "duration_seconds": round(summary.duration_seconds, 3),
        }
