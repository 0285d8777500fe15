"""
Email Queue - keeps SMTP off the request path

Routes enqueue rendered messages and return immediately. A background
worker started in the app lifespan sends due jobs in small batches,
highest priority first. A failed send is retried with exponential backoff
(EMAIL_RETRY_DELAY_SECONDS * 2 ** (attempt - 1)) until EMAIL_MAX_RETRIES
attempts have been made, then the job is marked failed.

The queue lives in process memory; jobs still pending at shutdown are lost.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from infohub.core.config import settings
from infohub.core.logging_config import logger

Sender = Callable[[str, str, str, Optional[str]], Awaitable[bool]]


class EmailPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class EmailJobStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


_PRIORITY_RANK = {EmailPriority.HIGH: 0, EmailPriority.NORMAL: 1, EmailPriority.LOW: 2}


@dataclass
class EmailJob:
    to: str
    subject: str
    html: str
    text: Optional[str] = None
    priority: EmailPriority = EmailPriority.NORMAL
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: EmailJobStatus = EmailJobStatus.PENDING
    attempts: int = 0
    max_retries: int = 3
    next_attempt_at: float = 0.0
    created_at: float = field(default_factory=time.time)
    error: Optional[str] = None

    def is_due(self, now: float) -> bool:
        return self.status == EmailJobStatus.PENDING and self.next_attempt_at <= now


class EmailQueue:
    """In-process queue with retrying delivery"""

    def __init__(
        self,
        sender: Optional[Sender] = None,
        batch_size: int = None,
        max_retries: int = None,
        retry_delay_seconds: float = None,
        interval_seconds: float = None,
    ):
        self._sender = sender
        self.batch_size = batch_size or settings.EMAIL_QUEUE_BATCH_SIZE
        self.max_retries = max_retries or settings.EMAIL_MAX_RETRIES
        self.retry_delay = retry_delay_seconds if retry_delay_seconds is not None else settings.EMAIL_RETRY_DELAY_SECONDS
        self.interval = interval_seconds or settings.EMAIL_QUEUE_INTERVAL_SECONDS

        self._jobs: List[EmailJob] = []
        self._busy = False
        self._task: Optional[asyncio.Task] = None
        self.running = False
        self.sent_total = 0
        self.failed_total = 0

    async def _send(self, job: EmailJob) -> bool:
        if self._sender is None:
            from infohub.services.email_service import email_service

            self._sender = email_service.send_email
        return await self._sender(job.to, job.subject, job.html, job.text)

    def enqueue(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        priority: EmailPriority = EmailPriority.NORMAL,
        delay_seconds: float = 0,
    ) -> str:
        job = EmailJob(
            to=to,
            subject=subject,
            html=html,
            text=text,
            priority=EmailPriority(priority),
            max_retries=self.max_retries,
            next_attempt_at=time.time() + delay_seconds,
        )
        self._jobs.append(job)
        self._jobs.sort(key=lambda j: (_PRIORITY_RANK[j.priority], j.created_at))
        logger.debug(f"[EmailQueue] Queued {job.id} for {to}: {subject}")
        return job.id

    def _due_batch(self) -> List[EmailJob]:
        now = time.time()
        return [j for j in self._jobs if j.is_due(now)][:self.batch_size]

    async def process_due(self) -> Dict[str, int]:
        """Send one batch of due jobs; returns counts for this pass"""
        if self._busy:
            return {"sent": 0, "retrying": 0, "failed": 0}
        self._busy = True
        try:
            batch = self._due_batch()
            sent = retried = failed = 0
            for job in batch:
                job.status = EmailJobStatus.SENDING
                job.attempts += 1
                try:
                    ok = await self._send(job)
                    error = None if ok else "send returned False"
                except Exception as e:
                    ok, error = False, f"{type(e).__name__}: {e}"
                    logger.error(f"[EmailQueue] Sender raised for {job.id}: {error}")

                if ok:
                    job.status = EmailJobStatus.SENT
                    job.error = None
                    sent += 1
                elif job.attempts >= job.max_retries:
                    job.status = EmailJobStatus.FAILED
                    job.error = error
                    failed += 1
                    logger.warning(f"[EmailQueue] Giving up on {job.id} to {job.to} after {job.attempts} attempts")
                else:
                    job.status = EmailJobStatus.PENDING
                    job.error = error
                    job.next_attempt_at = time.time() + self.retry_delay * 2 ** (job.attempts - 1)
                    retried += 1

            self.sent_total += sent
            self.failed_total += failed
            self._jobs = [j for j in self._jobs if j.status != EmailJobStatus.SENT]
        finally:
            self._busy = False

        if batch:
            logger.info(f"[EmailQueue] Batch done: {sent} sent, {retried} retrying, {failed} failed")
        return {"sent": sent, "retrying": retried, "failed": failed}

    async def drain(self) -> Dict[str, int]:
        """Send everything that is due now, batch after batch"""
        totals = {"sent": 0, "retrying": 0, "failed": 0}
        while self._due_batch() and not self._busy:
            for key, value in (await self.process_due()).items():
                totals[key] += value
        return totals

    def cancel(self, job_id: str) -> bool:
        for job in self._jobs:
            if job.id == job_id and job.status == EmailJobStatus.PENDING:
                job.status = EmailJobStatus.CANCELLED
                logger.info(f"[EmailQueue] Cancelled {job_id}")
                return True
        return False

    def requeue_failed(self) -> int:
        """Give failed jobs a fresh set of attempts"""
        count = 0
        for job in self._jobs:
            if job.status == EmailJobStatus.FAILED:
                job.status = EmailJobStatus.PENDING
                job.attempts = 0
                job.error = None
                job.next_attempt_at = 0.0
                count += 1
        if count:
            logger.info(f"[EmailQueue] Requeued {count} failed emails")
        return count

    def cleanup(self) -> int:
        """Drop failed and cancelled jobs"""
        before = len(self._jobs)
        self._jobs = [j for j in self._jobs if j.status in (EmailJobStatus.PENDING, EmailJobStatus.SENDING)]
        return before - len(self._jobs)

    def clear(self) -> None:
        self._jobs.clear()
        self.sent_total = 0
        self.failed_total = 0

    def jobs(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            {
                "id": j.id,
                "to": j.to,
                "subject": j.subject,
                "priority": j.priority.value,
                "status": j.status.value,
                "attempts": j.attempts,
                "maxRetries": j.max_retries,
                "nextAttemptAt": j.next_attempt_at,
                "createdAt": j.created_at,
                "error": j.error,
            }
            for j in self._jobs
            if status is None or j.status.value == status
        ]

    def stats(self) -> Dict[str, Any]:
        counts = {s.value: 0 for s in EmailJobStatus}
        for job in self._jobs:
            counts[job.status.value] += 1
        return {
            "queued": len(self._jobs),
            **counts,
            "sentTotal": self.sent_total,
            "failedTotal": self.failed_total,
            "running": self.running,
        }

    # ==================== WORKER ====================

    async def start(self) -> None:
        if self.running:
            logger.warning("[EmailQueue] Worker already running")
            return
        self.running = True
        self._task = asyncio.create_task(self._worker())
        logger.info(f"[EmailQueue] Worker started (every {self.interval}s, batch {self.batch_size})")

    async def stop(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        pending = self.stats()["pending"]
        logger.info(f"[EmailQueue] Worker stopped, {pending} emails still pending")

    async def _worker(self) -> None:
        while self.running:
            try:
                await self.process_due()
            except Exception as e:
                logger.error(f"[EmailQueue] Worker pass failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)


email_queue = EmailQueue()
