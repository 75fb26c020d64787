"""
Bulk Document Writer

Writes many documents that share one partition-key value, either one after
another or through a bounded pool of concurrent tasks.

Async mode admission:
- A semaphore caps in-flight writes (50 by default)
- A document that waits longer than the admission timeout for a slot is
  written inline instead
- Before every spawn the job list is checked; one failed job aborts the
  batch. Jobs already running are left to finish; drain() waits for them.

Author: cosmosrest Team
Date: 2026-10-14
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from .client import PreparedWrite, ResourceClient
from .constants import DEFAULT_ADMISSION_TIMEOUT, DEFAULT_MAX_CONCURRENCY
from .context import ConnectionContext
from .models import BulkJob, BulkWriteResult, JobState
from .validation import DocumentValidator, extract_partition_key_value, require_collection
from ..core.logging_config import clear_batch_id, log_with_context, set_batch_id
from ..exceptions import BatchAbortedError, CosmosRestError

logger = logging.getLogger(__name__)


class BulkWriter:
    """
    Concurrent writer for batches of documents.

    Args:
        client: ResourceClient used for every write
        max_concurrency: Maximum number of in-flight write tasks
        admission_timeout: Seconds a document waits for a slot before it is
                           written inline
    """

    def __init__(
        self,
        client: ResourceClient,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        admission_timeout: float = DEFAULT_ADMISSION_TIMEOUT
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if admission_timeout <= 0:
            raise ValueError("admission_timeout must be positive")
        self.client = client
        self.max_concurrency = max_concurrency
        self.admission_timeout = admission_timeout
        # Spawned writes, removed as each one finishes
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of write tasks that have not finished yet."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for writes left running by an aborted batch."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def write_many(
        self,
        context: ConnectionContext,
        documents: Sequence[Mapping[str, Any]],
        upsert: bool = False,
        use_async: bool = True
    ) -> BulkWriteResult:
        """
        Write a batch of documents into the selected collection.

        Args:
            context: Context with a selected collection; must not be mutated
                     while the batch runs
            documents: Documents sharing one partition-key value
            upsert: Create-or-replace instead of create
            use_async: Use the concurrent task pool

        Returns:
            BulkWriteResult with counts for the batch

        Raises:
            IncompleteContextError: If no collection is selected
            ValidationFailedError: If a document fails local validation
            RemoteRejectedError: If a write fails (sync mode, or an inline write)
            BatchAbortedError: If a concurrent job failed
        """
        require_collection(context, "write documents")
        result = BulkWriteResult(total=len(documents), mode="async" if use_async else "sync")
        if not documents:
            return result

        set_batch_id(uuid.uuid4().hex[:12])
        try:
            if use_async:
                await self._write_concurrent(context, documents, upsert, result)
            else:
                await self._write_sequential(context, documents, upsert, result)
        finally:
            clear_batch_id()

        log_with_context(
            logger, logging.INFO,
            f"Bulk write finished: {result.written}/{result.total} document(s)",
            mode=result.mode,
            fallback_writes=result.fallback_writes,
            peak_in_flight=result.peak_in_flight,
        )
        return result

    # ========== Sequential ==========

    async def _write_sequential(
        self,
        context: ConnectionContext,
        documents: Sequence[Mapping[str, Any]],
        upsert: bool,
        result: BulkWriteResult
    ) -> None:
        for document in documents:
            try:
                await self.client.create_document(context, document, upsert=upsert)
            except CosmosRestError as e:
                e.details["documents_written"] = result.written
                logger.error(
                    f"Bulk write stopped at document {document.get('id')!r} "
                    f"after {result.written} write(s): {e.error_code}"
                )
                raise
            result.written += 1

    # ========== Concurrent ==========

    def _shared_write(
        self,
        context: ConnectionContext,
        documents: Sequence[Mapping[str, Any]],
        upsert: bool
    ) -> PreparedWrite:
        """Build the shared request from the first document's partition-key value."""
        first_value = extract_partition_key_value(documents[0], context.partition_key_name)
        return self.client.prepare_write(context, first_value, upsert)

    def _check_partition_key(
        self,
        context: ConnectionContext,
        document: Mapping[str, Any],
        first_value: Any
    ) -> None:
        value = extract_partition_key_value(document, context.partition_key_name)
        if value != first_value:
            # TODO: split heterogeneous batches per partition-key value instead of
            # sending them under the first document's header
            logger.warning(
                f"Document {document.get('id')!r} has partition key {value!r} but the batch "
                f"header carries {first_value!r}"
            )

    @staticmethod
    def _failed_job(jobs: List[BulkJob]) -> Optional[BulkJob]:
        return next((job for job in jobs if job.state == JobState.FAILED), None)

    def _abort_if_failed(self, jobs: List[BulkJob], result: BulkWriteResult) -> None:
        failed = self._failed_job(jobs)
        if failed is None:
            return
        running = sum(1 for job in jobs if not job.is_terminal)
        logger.error(
            f"Aborting bulk write: job {failed.job_id} for document {failed.document_id!r} "
            f"failed; {running} job(s) still in flight"
        )
        raise BatchAbortedError(
            failed.document_id, failed.error, result.written, result.total
        ) from failed.error

    async def _run_job(
        self,
        context: ConnectionContext,
        prepared: PreparedWrite,
        document: Mapping[str, Any],
        job: BulkJob,
        slots: asyncio.Semaphore,
        result: BulkWriteResult,
        in_flight: List[int]
    ) -> None:
        in_flight[0] += 1
        result.peak_in_flight = max(result.peak_in_flight, in_flight[0])
        try:
            if job.transition(JobState.RUNNING):
                logger.debug(f"Job {job.job_id} running for document {job.document_id!r}")
            await self.client.send_write(context, prepared, document)
            job.transition(JobState.COMPLETED)
            result.written += 1
        except Exception as e:
            job.error = e
            if job.transition(JobState.FAILED):
                logger.warning(f"Job {job.job_id} for document {job.document_id!r} failed: {e}")
        finally:
            in_flight[0] -= 1
            self._pending.discard(asyncio.current_task())
            slots.release()

    async def _write_concurrent(
        self,
        context: ConnectionContext,
        documents: Sequence[Mapping[str, Any]],
        upsert: bool,
        result: BulkWriteResult
    ) -> None:
        prepared = self._shared_write(context, documents, upsert)
        first_value = extract_partition_key_value(documents[0], context.partition_key_name)

        slots = asyncio.Semaphore(self.max_concurrency)
        jobs: List[BulkJob] = []
        tasks: Dict[str, asyncio.Task] = {}
        in_flight = [0]

        for document in documents:
            DocumentValidator.validate_id(document)
            self._check_partition_key(context, document, first_value)
            self._abort_if_failed(jobs, result)

            try:
                await asyncio.wait_for(slots.acquire(), timeout=self.admission_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"No write slot within {self.admission_timeout:.0f}s; writing "
                    f"document {document.get('id')!r} inline"
                )
                self._abort_if_failed(jobs, result)
                await self.client.send_write(context, prepared, document)
                result.written += 1
                result.fallback_writes += 1
                continue

            try:
                self._abort_if_failed(jobs, result)
            except BatchAbortedError:
                slots.release()
                raise

            job = BulkJob(document_id=document["id"])
            jobs.append(job)
            task = asyncio.create_task(
                self._run_job(context, prepared, document, job, slots, result, in_flight)
            )
            self._pending.add(task)
            tasks[job.job_id] = task

        if tasks:
            await asyncio.gather(*tasks.values())
        self._abort_if_failed(jobs, result)
