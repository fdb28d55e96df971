"""
Webhook routes for Twilio voice callbacks
"""

from typing import Optional
from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response

from voice_receptionist.api.middleware.webhook_security import validate_twilio_webhook
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.call import CallInitiated, CallStatus, RecordingReady, StatusChanged
from voice_receptionist.services.call_session import get_call_session_controller

logger = get_logger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(validate_twilio_webhook)]
)


def _xml(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


def _seconds(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except ValueError:
        return None


@router.post("/twilio/voice")
async def handle_incoming_call(
    CallSid: str = Form(...),
    From: str = Form(""),
    To: str = Form("")
):
    """
    Handle incoming calls from Twilio

    Answers with the tenant greeting and a record step.
    """
    logger.info(f"[{CallSid}] Incoming call from {From} to {To}")

    controller = get_call_session_controller()
    outcome = await controller.handle_call_initiated(
        CallInitiated(call_id=CallSid, caller_number=From, callee_number=To)
    )
    return _xml(outcome.twiml)


@router.post("/twilio/recording")
async def handle_recording(
    CallSid: str = Form(...),
    RecordingUrl: str = Form(""),
    RecordingDuration: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    To: Optional[str] = Form(None)
):
    """
    Handle the record action callback

    Twilio posts here when the caller stops speaking.
    """
    logger.info(f"[{CallSid}] Recording ready ({RecordingDuration}s)")

    controller = get_call_session_controller()
    outcome = await controller.handle_recording_ready(
        RecordingReady(
            call_id=CallSid,
            audio_locator=RecordingUrl,
            duration_seconds=_seconds(RecordingDuration),
            caller_number=From,
            callee_number=To
        )
    )
    return _xml(outcome.twiml)


@router.post("/twilio/status")
async def handle_call_status(
    CallSid: str = Form(...),
    CallStatus_: str = Form("", alias="CallStatus"),
    CallDuration: Optional[str] = Form(None)
):
    """
    Handle call status callbacks from Twilio
    """
    controller = get_call_session_controller()
    return await controller.handle_status_changed(
        StatusChanged(
            call_id=CallSid,
            status=CallStatus.from_gateway(CallStatus_),
            duration_seconds=_seconds(CallDuration)
        )
    )
