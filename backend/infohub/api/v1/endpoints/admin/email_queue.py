"""
Admin Email Queue endpoints.

GET    ''              queue stats plus jobs (optionally by status)
POST   /retry-failed   give failed jobs another round of attempts
POST   /process        send whatever is due right now
POST   /test           send a test email directly to the admin
DELETE /{job_id}       cancel a pending job
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from infohub.core.logging_config import logger
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.services.email_queue import EmailJobStatus, email_queue
from infohub.services.email_service import email_service

router = APIRouter()

JOB_STATUSES = tuple(s.value for s in EmailJobStatus)


@router.get("")
async def get_email_queue(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_admin: User = Depends(get_current_admin)
):
    if status_filter is not None and status_filter not in JOB_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status. Must be one of: {', '.join(JOB_STATUSES)}"
        )
    return {
        "success": True,
        "data": {
            "configured": email_service.is_configured,
            "stats": email_queue.stats(),
            "jobs": email_queue.jobs(status_filter),
        },
    }


@router.post("/retry-failed")
async def retry_failed_emails(current_admin: User = Depends(get_current_admin)):
    count = email_queue.requeue_failed()
    logger.info(f"[EmailQueue] {current_admin.email} requeued {count} failed emails")
    return {"success": True, "message": f"Requeued {count} failed emails", "data": {"requeued": count}}


@router.post("/process")
async def process_email_queue(current_admin: User = Depends(get_current_admin)):
    result = await email_queue.drain()
    return {"success": True, "data": result}


@router.post("/test")
async def send_test_email(current_admin: User = Depends(get_current_admin)):
    """Bypasses the queue so the SMTP outcome is reported immediately"""
    if not email_service.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Email service is not configured"
        )
    sent = await email_service.send_test_email(current_admin.email)
    return {
        "success": sent,
        "message": f"Test email sent to {current_admin.email}" if sent else "SMTP delivery failed, check the server logs",
    }


@router.delete("/{job_id}")
async def cancel_email(job_id: str, current_admin: User = Depends(get_current_admin)):
    if not email_queue.cancel(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending email with that ID"
        )
    return {"success": True, "message": "Email cancelled"}
