"""Dispatch entry point for friend reminders.

Responses follow the envelope the clients already consume: ``200`` with
``success: true`` and the new reminder id, or ``400`` with ``success: false``
and an error message for every failure.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from api.models.schemas import ErrorResponse, SendReminderRequest, SendReminderResponse
from api.services.identity import IdentityProvider, bearer_token
from core.errors import ReminderError, ValidationError
from friends.records import FriendReminderRequest
from friends.service import FriendReminderService, friend_reminders

logger = logging.getLogger(__name__)

router = APIRouter(tags=["friend-reminders"])


def get_friend_reminders() -> FriendReminderService:
    return friend_reminders


def get_identity_provider() -> IdentityProvider:
    return IdentityProvider()


@router.options("/send-reminder")
def send_reminder_preflight() -> Response:
    return Response(status_code=200)


@router.post(
    "/send-reminder",
    response_model=SendReminderResponse,
    responses={400: {"model": ErrorResponse}},
)
async def send_reminder(
    request: Request,
    authorization: Optional[str] = Header(None),
    service: FriendReminderService = Depends(get_friend_reminders),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        caller = identity.verify(bearer_token(authorization))
        body = await _read_body(request)
        result = await run_in_threadpool(
            service.send,
            FriendReminderRequest(
                from_user_id=body.from_user_id,
                to_user_id=body.to_user_id,
                medication_id=body.medication_id,
                message=body.message,
                medication_name=body.medication_name,
            ),
            caller.user_id,
        )
    except ReminderError as exc:
        logger.info("Friend reminder rejected: %s", exc)
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(exc)).model_dump())
    return SendReminderResponse(reminder_id=result.reminder.id, delivery=result.delivery.status.value)


async def _read_body(request: Request) -> SendReminderRequest:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    try:
        return SendReminderRequest.model_validate(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) or "body" for error in exc.errors())
        raise ValidationError(f"Invalid request fields: {fields}") from exc
