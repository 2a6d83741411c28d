"""Export job service.

Owns the in-memory job list: validates requests, runs the pipeline and
renderer for each job, hands artifacts to the download target, and writes
the full job list to the history store on every lifecycle transition.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wasilah.config.settings import Settings, get_settings
from wasilah.core.exceptions import (
    ExportCancelled,
    ExportValidationError,
    PersistenceError,
    StateTransitionError,
)
from wasilah.core.state import JobStateMachine
from wasilah.data.export import ExportEngine
from wasilah.data.models import ExportConfig, ExportJob, JobStatus
from wasilah.data.pipeline import to_datetime
from wasilah.data.providers import DownloadTarget, MemoryDownloader, RecordProvider
from wasilah.data.store import HistoryStore, KeyValueStore, create_store
from wasilah.utils.logging import execution_context, get_logger

logger = get_logger("export.service")

_id_lock = threading.Lock()
_last_id_ms = 0

# Progress reported at stage boundaries; chunk progress fills the render span
PROGRESS_PREPARED = 30
PROGRESS_RENDERED = 90


def next_job_id(now_ms: int | None = None) -> str:
    """``EXP-<epoch-ms>``, strictly increasing within the process."""
    global _last_id_ms
    with _id_lock:
        candidate = now_ms if now_ms is not None else int(time.time() * 1000)
        _last_id_ms = max(candidate, _last_id_ms + 1)
        return f"EXP-{_last_id_ms}"


def _observe_job_id(job_id: str) -> None:
    """Keep new ids above ids already present in loaded history."""
    global _last_id_ms
    _, _, suffix = job_id.partition("EXP-")
    if suffix.isdigit():
        with _id_lock:
            _last_id_ms = max(_last_id_ms, int(suffix))


class ExportService:
    """Single owner of export jobs.

    Call :meth:`init` before use (or use the service as a context manager).
    Every read-modify-write of the job list happens under one re-entrant
    lock; independent jobs may run concurrently from several threads.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: KeyValueStore | None = None,
        provider: RecordProvider | None = None,
        downloader: DownloadTarget | None = None,
        engine: ExportEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_store = store is None
        self.store = store
        self.provider = provider
        self.downloader = downloader or MemoryDownloader()
        self.engine = engine or ExportEngine(self.settings.exports)
        self._clock = clock or datetime.now

        self._lock = threading.RLock()
        self._jobs: list[ExportJob] = []
        self._machines: dict[str, JobStateMachine] = {}
        self._history: HistoryStore | None = None
        self._initialized = False

    # ==================== LIFECYCLE ====================

    def init(self) -> None:
        """Open the store and read the job history back."""
        with self._lock:
            if self._initialized:
                return
            if self.store is None:
                data_dir = self.settings.general.data_dir
                self.store = create_store(
                    self.settings.general.storage_backend,
                    data_dir=Path(data_dir) if data_dir else None,
                )
            self._history = HistoryStore(self.store, self.settings.exports.history_key)
            try:
                jobs = self._history.load()
            except PersistenceError as exc:
                logger.warning("history.load_failed", error=str(exc))
                jobs = []
            self._jobs = jobs
            self._machines = {
                job.id: self._make_machine(job.id, job.status) for job in jobs
            }
            for job in jobs:
                _observe_job_id(job.id)
            self._initialized = True
            logger.info("export.service_initialized", jobs=len(jobs))

    def teardown(self) -> None:
        with self._lock:
            if not self._initialized:
                return
            if self._owns_store and self.store is not None:
                self.store.close()
                self.store = None
            self._history = None
            self._initialized = False
            logger.info("export.service_stopped")

    def __enter__(self) -> ExportService:
        self.init()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.teardown()

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.init()

    # ==================== QUERIES ====================

    @property
    def jobs(self) -> list[ExportJob]:
        """Snapshot of the job list, newest first."""
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs]

    def list_jobs(
        self, status: JobStatus | None = None, limit: int | None = None
    ) -> list[ExportJob]:
        jobs = self.jobs
        if status is not None:
            jobs = [job for job in jobs if job.status == status]
        return jobs[:limit] if limit is not None else jobs

    def get_job(self, job_id: str) -> ExportJob | None:
        with self._lock:
            job = self._find(job_id)
            return job.model_copy(deep=True) if job else None

    def _find(self, job_id: str) -> ExportJob | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    # ==================== VALIDATION ====================

    def validate_request(self, config: ExportConfig | dict[str, Any], name: str) -> ExportConfig:
        """Return a validated config or raise ExportValidationError."""
        if not isinstance(config, ExportConfig):
            try:
                config = ExportConfig.model_validate(config)
            except ValidationError as exc:
                problems = [
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in exc.errors()
                ]
                raise ExportValidationError("Invalid export configuration", problems) from exc

        problems: list[str] = []
        if not name or not name.strip():
            problems.append("Job name is required")
        if not config.include_columns:
            problems.append("At least one column must be selected")
        if config.date_range is not None:
            start, end = config.date_range.resolve(self._clock())
            start_at = to_datetime(start) if start else None
            end_at = to_datetime(end) if end else None
            if start_at and end_at and start_at > end_at:
                problems.append("Date range start must not be after its end")
        filters = config.filters
        if (
            filters is not None
            and filters.min_amount is not None
            and filters.max_amount is not None
            and filters.min_amount > filters.max_amount
        ):
            problems.append("Minimum amount must not exceed maximum amount")

        if problems:
            raise ExportValidationError("; ".join(problems), problems)
        return config

    # ==================== TRANSITIONS ====================

    def _make_machine(self, job_id: str, status: JobStatus) -> JobStateMachine:
        return JobStateMachine(job_id, initial=status)

    def _persist(self) -> None:
        if self._history is None:
            return
        try:
            self._history.save(self._jobs)
        except PersistenceError as exc:
            # In-memory state stays authoritative
            logger.warning("history.persist_failed", error=str(exc))

    def _transition(self, job: ExportJob, trigger: str, **updates: Any) -> None:
        with self._lock:
            machine = self._machines.get(job.id)
            if machine is None:
                raise StateTransitionError(
                    f"Job {job.id} is no longer tracked", from_state=job.status.value, trigger=trigger
                )
            job.status = machine.fire(trigger)
            for key, value in updates.items():
                setattr(job, key, value)
            self._persist()

    def _check_cancelled(self, job: ExportJob) -> None:
        with self._lock:
            machine = self._machines.get(job.id)
            if machine is None or machine.status == JobStatus.CANCELLED:
                raise ExportCancelled(f"Export {job.id} was cancelled")

    def _set_progress(self, job: ExportJob, progress: int) -> None:
        with self._lock:
            job.progress = max(job.progress, min(100, progress))

    def _chunk_hook(self, job: ExportJob) -> Callable[[int, int], None]:
        def on_chunk(done: int, total: int) -> None:
            self._check_cancelled(job)
            if total:
                span = PROGRESS_RENDERED - PROGRESS_PREPARED
                self._set_progress(job, PROGRESS_PREPARED + span * done // total)

        return on_chunk

    # ==================== OPERATIONS ====================

    def create_job(self, config: ExportConfig, name: str) -> ExportJob:
        """Register a pending job at the head of the list."""
        with self._lock:
            self._ensure_initialized()
            job = ExportJob(
                id=next_job_id(),
                name=name.strip(),
                config=config,
                created_at=self._clock(),
            )
            self._jobs.insert(0, job)
            self._machines[job.id] = self._make_machine(job.id, JobStatus.PENDING)
            self._persist()
            logger.info("export.job_created", job_id=job.id, format=config.format.value)
            return job

    def run_export(
        self,
        config: ExportConfig | dict[str, Any],
        name: str,
        records: Iterable[dict[str, Any]] | None = None,
    ) -> ExportJob:
        """Run one export to completion and return the final job snapshot.

        Invalid requests raise ExportValidationError before any job exists.
        Failures after that point never propagate: they mark the job failed.
        """
        self._ensure_initialized()
        config = self.validate_request(config, name)
        job = self.create_job(config, name)
        with execution_context(job_id=job.id):
            log = logger.bind(job_id=job.id)
            try:
                self._transition(job, "start", started_at=self._clock())
                self._check_cancelled(job)

                source = records if records is not None else self._fetch(config)
                prepared = self.engine.prepare(config, source, title=job.name)
                self._set_progress(job, PROGRESS_PREPARED)
                self._check_cancelled(job)

                rendered = self.engine.render(prepared, on_chunk=self._chunk_hook(job))
                self._set_progress(job, PROGRESS_RENDERED)

                with self._lock:
                    self._check_cancelled(job)
                    self.downloader.deliver(
                        rendered.content, rendered.filename, rendered.mime_type
                    )
                    self._transition(
                        job,
                        "complete",
                        completed_at=self._clock(),
                        row_count=rendered.row_count,
                        file_size=rendered.size,
                        filename=rendered.filename,
                        progress=100,
                    )
                log.info(
                    "export.job_completed",
                    filename=rendered.filename,
                    rows=rendered.row_count,
                    bytes=rendered.size,
                )
            except ExportCancelled:
                log.info("export.job_cancelled")
            except Exception as exc:
                log.warning("export.job_failed", error=str(exc), error_type=type(exc).__name__)
                self._fail(job, str(exc))
        with self._lock:
            return job.model_copy(deep=True)

    async def run_export_async(
        self,
        config: ExportConfig | dict[str, Any],
        name: str,
        records: Iterable[dict[str, Any]] | None = None,
    ) -> ExportJob:
        """Run :meth:`run_export` in a worker thread, off the event loop."""
        return await asyncio.to_thread(self.run_export, config, name, records)

    def _fetch(self, config: ExportConfig) -> list[dict[str, Any]]:
        if self.provider is None:
            raise RuntimeError("No record provider configured")
        return self.provider.fetch(config.entity_type)

    def _fail(self, job: ExportJob, message: str) -> None:
        with self._lock:
            machine = self._machines.get(job.id)
            if machine is None or not machine.can("fail"):
                return
            self._transition(job, "fail", failed_at=self._clock(), error=message)

    def cancel(self, job_id: str) -> ExportJob:
        """Cancel a pending or processing job.

        Raises ``KeyError`` for an unknown job and StateTransitionError for a
        job that already finished.
        """
        with self._lock:
            self._ensure_initialized()
            job = self._find(job_id)
            if job is None:
                raise KeyError(job_id)
            self._transition(job, "cancel", cancelled_at=self._clock())
            logger.info("export.job_cancel_requested", job_id=job_id)
            return job.model_copy(deep=True)

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            self._ensure_initialized()
            job = self._find(job_id)
            if job is None:
                return False
            self._jobs.remove(job)
            self._machines.pop(job_id, None)
            self._persist()
            logger.info("export.job_deleted", job_id=job_id)
            return True

    def clear_history(self) -> int:
        """Drop every job from memory and remove the history key from the store."""
        with self._lock:
            self._ensure_initialized()
            removed = len(self._jobs)
            self._jobs = []
            self._machines = {}
            if self._history is not None:
                try:
                    self._history.clear()
                except PersistenceError as exc:
                    logger.warning("history.clear_failed", error=str(exc))
            logger.info("export.history_cleared", removed=removed)
            return removed

    def rerun(
        self, job_id: str, records: Iterable[dict[str, Any]] | None = None
    ) -> ExportJob:
        """Submit a stored job's config again as a new job."""
        original = self.get_job(job_id)
        if original is None:
            raise KeyError(job_id)
        return self.run_export(original.config, original.name, records)
