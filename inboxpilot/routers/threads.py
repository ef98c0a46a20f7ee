"""Operator actions on conversation threads."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import get_db
from inboxpilot.dependencies import require_admin_token
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.services.operator_reply_service import ThreadNotFound, send_operator_reply

logger = get_logger("threads")

router = APIRouter(prefix="/threads", tags=["threads"], dependencies=[Depends(require_admin_token)])


class OperatorReplyRequest(BaseModel):
    business_id: str
    message_text: str


class OperatorReplyResponse(BaseModel):
    success: bool
    thread_id: uuid.UUID
    sent: bool
    send_error: Optional[str] = None
    provider_message_id: Optional[str] = None


@router.post("/{thread_id}/reply", response_model=OperatorReplyResponse)
def reply_to_thread(thread_id: uuid.UUID, request: OperatorReplyRequest, db: Session = Depends(get_db)):
    """Send a manual reply into a thread of the given business.

    A channel failure still records the message, with ``sent`` false.
    """
    text = request.message_text.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="message_text is required")

    try:
        result = send_operator_reply(db, request.business_id, thread_id, text)
        db.commit()
    except ThreadNotFound:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    except (PersistenceError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(
            "Operator reply not recorded",
            extra={"context": {"business_id": request.business_id, "thread_id": str(thread_id), "error": str(e)}},
        )
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to record reply")

    return OperatorReplyResponse(
        success=True,
        thread_id=result.thread_id,
        sent=result.sent,
        send_error=result.error,
        provider_message_id=result.provider_message_id,
    )
