from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from memories_backend.integrations.mail.smtp_mailer import MailDeliveryError, Mailer
from memories_backend.schemas import MessageResponse, NotificationRequest
from memories_backend.services import notification_service
from memories_backend.services.notification_service import EmailNotConfiguredError, get_mailer

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/send-email", response_model=MessageResponse)
async def send_email(
    payload: NotificationRequest,
    request: Request,
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    request_id = getattr(request.state, "request_id", None)
    try:
        await notification_service.send_notification(mailer=mailer, payload=payload)
    except EmailNotConfiguredError as e:
        logger.error("email configuration missing request_id=%s", request_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e
    except MailDeliveryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Failed to send email", "details": {"error": str(e)}},
        ) from e

    return MessageResponse(message="Email sent successfully")
