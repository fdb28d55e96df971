"""
Call Session Controller
Drives one inbound call turn by turn: greeting, listening, answering, hanging up.

Each webhook is handled from scratch. Everything needed to resume a call is
re-derived from the call id through the call log and the tenant cache.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from voice_receptionist.core.config import settings
from voice_receptionist.core.exceptions import (
    ConfigNotFoundError,
    ConversationServiceError,
    ReceptionistException,
    SynthesisUnavailableError,
    TranscriptionUnavailableError,
    UnrecognizedReplyShapeError,
)
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.call import (
    CallInitiated,
    CallLogRecord,
    CallState,
    CallStatus,
    ConversationTurn,
    RecordingReady,
    Speaker,
    StatusChanged,
)
from voice_receptionist.models.speech import AudioArtifact, AudioSource, ControlDocument, Hangup
from voice_receptionist.models.tenant import TenantCallConfig
from voice_receptionist.services.call_log import CallLogRepository
from voice_receptionist.services.conversation import (
    SAFE_DEFAULT_REPLY,
    ConversationClient,
    ReplyShape,
    build_business_context,
    normalize_reply,
)
from voice_receptionist.services.speech.end_detector import is_ending
from voice_receptionist.services.speech.humanizer import Humanizer, strip_cues
from voice_receptionist.services.speech.synthesis import SpeechSynthesisAdapter
from voice_receptionist.services.speech.transcription import TranscriptionAdapter, with_audio_extension
from voice_receptionist.services.telephony.twiml import (
    hangup_document,
    native_utterance,
    record_continuation,
    render_twiml,
    utterance_for,
)
from voice_receptionist.services.tenant_cache import TenantConfigCache
from voice_receptionist.services.tenant_repository import TenantRepository

logger = get_logger(__name__)

T = TypeVar("T")

APOLOGY_MESSAGE = "Lo sentimos, ha ocurrido un error. Por favor, inténtelo de nuevo más tarde."
NOT_CONFIGURED_MESSAGE = "Lo sentimos, este número no está disponible en este momento. Gracias por llamar."
ASSISTANT_DISABLED_MESSAGE = "Lo sentimos, el asistente no está disponible en este momento. Gracias por llamar."
CLARIFICATION_PROMPT = "Disculpe, no le he entendido bien. ¿Podría repetirlo, por favor?"

HISTORY_TURNS = 10

# Kept back from each step so the turn can still render its document
STEP_RESERVE_SECONDS = 1.0


class StepStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILURE = "failure"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one pipeline step; degraded and failed steps carry the reason"""
    status: StepStatus
    value: Any = None
    error: Optional[ReceptionistException] = None

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILURE


@dataclass(frozen=True)
class TurnOutcome:
    """State reached by a webhook and the control document that gets there"""
    state: CallState
    document: ControlDocument

    @property
    def twiml(self) -> str:
        return render_twiml(self.document)


def open_greeting(config: TenantCallConfig) -> str:
    return config.greeting_text or f"Hola, ha llamado a {config.company_name}. ¿En qué puedo ayudarle?"


def closed_greeting(config: TenantCallConfig) -> str:
    if config.after_hours_message:
        return config.after_hours_message
    return (
        f"Hola, ha llamado a {config.company_name}. Ahora mismo estamos fuera de nuestro horario de atención, "
        f"que es {config.business_hours.describe()}. Cuénteme su consulta y le ayudaré en lo que pueda."
    )


def closing_line(config: TenantCallConfig) -> str:
    return f"Gracias por llamar a {config.company_name}. ¡Hasta pronto!"


class CallSessionController:
    """
    Turn-by-turn state machine for inbound calls

    States: GREETING -> AWAITING_INPUT -> PROCESSING -> RESPONDING ->
    (AWAITING_INPUT | TERMINATED). Every handler returns a control document;
    errors stop at _guarded and never reach the gateway.
    """

    def __init__(
        self,
        tenant_repository: TenantRepository,
        tenant_cache: TenantConfigCache,
        call_log: CallLogRepository,
        transcription: TranscriptionAdapter,
        synthesis: SpeechSynthesisAdapter,
        humanizer: Humanizer,
        conversation: ConversationClient,
        end_detector: Callable[[str], bool] = is_ending,
        clock: Optional[Callable[[], datetime]] = None,
        turn_budget_seconds: Optional[float] = None
    ):
        self.tenant_repository = tenant_repository
        self.tenant_cache = tenant_cache
        self.call_log = call_log
        self.transcription = transcription
        self.synthesis = synthesis
        self.humanizer = humanizer
        self.conversation = conversation
        self.end_detector = end_detector
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.turn_budget_seconds = turn_budget_seconds or settings.turn_budget_seconds

    async def handle_event(
        self,
        event: Union[CallInitiated, RecordingReady, StatusChanged]
    ) -> Union[TurnOutcome, Dict[str, str]]:
        """Dispatch a gateway event to its handler"""
        if isinstance(event, CallInitiated):
            return await self.handle_call_initiated(event)
        if isinstance(event, RecordingReady):
            return await self.handle_recording_ready(event)
        return await self.handle_status_changed(event)

    async def handle_call_initiated(self, event: CallInitiated) -> TurnOutcome:
        """Answer a new call with the tenant's greeting and start listening"""
        deadline = self._deadline()
        return await self._guarded(event.call_id, lambda: self._greet(event, deadline), self._terminal_apology)

    async def handle_recording_ready(self, event: RecordingReady) -> TurnOutcome:
        """Transcribe the caller, get a reply and either keep listening or hang up"""
        deadline = self._deadline()
        return await self._guarded(
            event.call_id,
            lambda: self._process_recording(event, deadline),
            self._terminal_apology
        )

    async def handle_status_changed(self, event: StatusChanged) -> Dict[str, str]:
        """Record a status change; acknowledgement only"""
        return await self._guarded(
            event.call_id,
            lambda: self._record_status(event),
            lambda error: {"status": "received"}
        )

    async def _guarded(
        self,
        call_id: str,
        step: Callable[[], Awaitable[T]],
        on_error: Callable[[Exception], T]
    ) -> T:
        try:
            return await asyncio.wait_for(step(), timeout=self.turn_budget_seconds)
        except ConfigNotFoundError as e:
            logger.warning(f"[{call_id}] {e.error_code}: {e.message}")
            return on_error(e)
        except asyncio.TimeoutError as e:
            logger.error(f"[{call_id}] Turn exceeded {self.turn_budget_seconds:.1f}s budget")
            return on_error(e)
        except Exception as e:
            logger.exception(f"[{call_id}] Unhandled error during call turn: {e}")
            return on_error(e)

    def _deadline(self) -> float:
        return time.monotonic() + self.turn_budget_seconds

    def _remaining(self, deadline: float) -> float:
        """Seconds a step may take before the turn runs out of budget"""
        reserve = min(STEP_RESERVE_SECONDS, self.turn_budget_seconds / 4)
        return max(0.0, deadline - time.monotonic() - reserve)

    @staticmethod
    def _terminal_apology(error: Exception) -> TurnOutcome:
        message = NOT_CONFIGURED_MESSAGE if isinstance(error, ConfigNotFoundError) else APOLOGY_MESSAGE
        return TurnOutcome(state=CallState.TERMINATED, document=hangup_document(message))

    async def _resolve_tenant(self, callee_number: Optional[str]) -> TenantCallConfig:
        tenant_id = await self.tenant_repository.find_tenant_id(callee_number) if callee_number else None
        if tenant_id is None:
            raise ConfigNotFoundError(callee_number or "unknown")
        return await self.tenant_cache.get(tenant_id)

    async def _greet(self, event: CallInitiated, deadline: float) -> TurnOutcome:
        call_id = event.call_id
        config = await self._resolve_tenant(event.callee_number)
        logger.info(f"[{call_id}] Inbound call from {event.caller_number} for tenant {config.tenant_id}")

        self.call_log.create(CallLogRecord(
            call_id=call_id,
            tenant_id=config.tenant_id,
            caller_number=event.caller_number,
            callee_number=event.callee_number,
            status=CallStatus.IN_PROGRESS
        ))

        if not config.enabled:
            logger.info(f"[{call_id}] Assistant disabled for tenant {config.tenant_id}")
            return TurnOutcome(state=CallState.TERMINATED, document=hangup_document(ASSISTANT_DISABLED_MESSAGE))

        is_open = config.business_hours.is_open(self.clock())
        greeting = open_greeting(config) if is_open else closed_greeting(config)
        logger.debug(f"[{call_id}] Business hours open={is_open}")

        voiced = await self._voice(call_id, self.humanizer.humanize(greeting, config), config, deadline)
        self.call_log.add_turn(call_id, ConversationTurn(speaker=Speaker.ASSISTANT, text=greeting))

        document = ControlDocument(
            utterances=(utterance_for(voiced.value),),
            action=record_continuation()
        )
        return TurnOutcome(state=CallState.AWAITING_INPUT, document=document)

    async def _load_session(self, event: RecordingReady) -> TenantCallConfig:
        """Rebuild what this turn needs from the call log and tenant cache"""
        record = self.call_log.get(event.call_id)
        if record is not None:
            return await self.tenant_cache.get(record.tenant_id)

        config = await self._resolve_tenant(event.callee_number)
        logger.warning(f"[{event.call_id}] No call log row, recreating it for tenant {config.tenant_id}")
        self.call_log.create(CallLogRecord(
            call_id=event.call_id,
            tenant_id=config.tenant_id,
            caller_number=event.caller_number or "unknown",
            callee_number=event.callee_number,
            status=CallStatus.IN_PROGRESS
        ))
        return config

    async def _process_recording(self, event: RecordingReady, deadline: float) -> TurnOutcome:
        call_id = event.call_id
        config = await self._load_session(event)
        locator = with_audio_extension(event.audio_locator)

        heard = await self._transcribe(call_id, locator, config, deadline)
        if not heard.ok:
            logger.info(f"[{call_id}] {heard.error.error_code}: asking caller to repeat")
            self.call_log.record_recording(call_id, locator, None, event.duration_seconds)
            voiced = await self._voice(call_id, CLARIFICATION_PROMPT, config, deadline, cacheable=True)
            document = ControlDocument(
                utterances=(utterance_for(voiced.value),),
                action=record_continuation()
            )
            return TurnOutcome(state=CallState.AWAITING_INPUT, document=document)

        transcript = heard.value
        logger.info(f"[{call_id}] Caller said: {transcript}")
        history = self._history(call_id)
        self.call_log.record_recording(call_id, locator, transcript, event.duration_seconds)
        self.call_log.add_turn(call_id, ConversationTurn(speaker=Speaker.CALLER, text=transcript))

        reply = await self._converse(call_id, transcript, config, history, deadline)
        return await self._respond(call_id, reply.value, config, deadline)

    async def _respond(
        self,
        call_id: str,
        reply_text: str,
        config: TenantCallConfig,
        deadline: float
    ) -> TurnOutcome:
        ending = self.end_detector(reply_text)
        voiced = await self._voice(call_id, self.humanizer.humanize(reply_text, config), config, deadline)
        self.call_log.add_turn(call_id, ConversationTurn(speaker=Speaker.ASSISTANT, text=reply_text))

        if ending:
            logger.info(f"[{call_id}] Farewell detected, ending call")
            document = ControlDocument(
                utterances=(utterance_for(voiced.value), native_utterance(closing_line(config))),
                action=Hangup()
            )
            return TurnOutcome(state=CallState.TERMINATED, document=document)

        document = ControlDocument(
            utterances=(utterance_for(voiced.value),),
            action=record_continuation()
        )
        return TurnOutcome(state=CallState.AWAITING_INPUT, document=document)

    async def _transcribe(
        self,
        call_id: str,
        locator: str,
        config: TenantCallConfig,
        deadline: float
    ) -> StepResult:
        if not self.transcription.is_allowed_locator(locator):
            logger.warning(f"[{call_id}] Recording locator rejected: {locator}")
            return StepResult(
                StepStatus.FAILURE,
                error=TranscriptionUnavailableError("Recording locator rejected", details={"locator": locator})
            )

        try:
            text = await asyncio.wait_for(
                self.transcription.transcribe_with_retry(locator, config.language),
                timeout=self._remaining(deadline)
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{call_id}] Transcription ran out of turn budget")
            return StepResult(StepStatus.FAILURE, error=TranscriptionUnavailableError("Transcription timed out"))

        if not text:
            return StepResult(StepStatus.FAILURE, error=TranscriptionUnavailableError())
        return StepResult(StepStatus.SUCCESS, value=text)

    def _history(self, call_id: str) -> List[Dict[str, str]]:
        """Earlier turns of the call, oldest first"""
        return [
            {"speaker": turn.speaker.value, "text": turn.text}
            for turn in self.call_log.get_turns(call_id)[-HISTORY_TURNS:]
        ]

    async def _converse(
        self,
        call_id: str,
        transcript: str,
        config: TenantCallConfig,
        history: List[Dict[str, str]],
        deadline: float
    ) -> StepResult:
        context = build_business_context(config, history)

        try:
            raw = await asyncio.wait_for(
                self.conversation.reply(config.tenant_id, call_id, transcript, context),
                timeout=self._remaining(deadline)
            )
        except asyncio.TimeoutError:
            error = ConversationServiceError("Conversation reply timed out", details={"session_id": call_id})
            logger.error(f"[{call_id}] {error.error_code}: {error.message}")
            return StepResult(StepStatus.DEGRADED, value=SAFE_DEFAULT_REPLY, error=error)
        except ConversationServiceError as e:
            logger.error(f"[{call_id}] {e.error_code}: {e.message}")
            return StepResult(StepStatus.DEGRADED, value=SAFE_DEFAULT_REPLY, error=e)

        reply = normalize_reply(raw)
        if reply.shape == ReplyShape.UNRECOGNIZED:
            error = UnrecognizedReplyShapeError(type(raw).__name__)
            logger.warning(f"[{call_id}] {error.error_code}: {error.message}")
            return StepResult(StepStatus.DEGRADED, value=reply.text, error=error)

        return StepResult(StepStatus.SUCCESS, value=reply.text)

    async def _voice(
        self,
        call_id: str,
        text: str,
        config: TenantCallConfig,
        deadline: float,
        cacheable: bool = False
    ) -> StepResult:
        """Synthesize one utterance, degrading to the gateway's native voice"""
        try:
            artifact = await asyncio.wait_for(
                self.synthesis.synthesize(text, config.voice_preference, config, cacheable=cacheable),
                timeout=self._remaining(deadline)
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{call_id}] Synthesis ran out of turn budget")
            artifact = None

        if artifact is not None:
            return StepResult(StepStatus.SUCCESS, value=artifact)

        error = SynthesisUnavailableError()
        logger.warning(f"[{call_id}] {error.error_code}: using native voice for this utterance")
        spoken = strip_cues(text)
        return StepResult(
            StepStatus.DEGRADED,
            value=AudioArtifact(
                source=AudioSource.NATIVE_FALLBACK,
                locator_or_buffer=spoken,
                estimated_duration_seconds=round(len(spoken.split()) / 2.5, 2)
            ),
            error=error
        )

    async def _record_status(self, event: StatusChanged) -> Dict[str, str]:
        updated = self.call_log.update_status(event.call_id, event.status, event.duration_seconds)
        if updated:
            logger.info(f"[{event.call_id}] Status {event.status.value} (duration={event.duration_seconds})")
        else:
            logger.warning(f"[{event.call_id}] Status {event.status.value} for unknown call")
        return {"status": "received"}


# Singleton instance
_controller: Optional[CallSessionController] = None


def get_call_session_controller() -> CallSessionController:
    """Get the CallSessionController singleton wired with default collaborators"""
    global _controller
    if _controller is None:
        from voice_receptionist.services.call_log import get_call_log
        from voice_receptionist.services.conversation import get_conversation_client
        from voice_receptionist.services.speech.humanizer import get_humanizer
        from voice_receptionist.services.speech.synthesis import get_synthesis_adapter
        from voice_receptionist.services.speech.transcription import get_transcription_adapter
        from voice_receptionist.services.tenant_cache import get_tenant_cache
        from voice_receptionist.services.tenant_repository import get_tenant_repository

        _controller = CallSessionController(
            tenant_repository=get_tenant_repository(),
            tenant_cache=get_tenant_cache(),
            call_log=get_call_log(),
            transcription=get_transcription_adapter(),
            synthesis=get_synthesis_adapter(),
            humanizer=get_humanizer(),
            conversation=get_conversation_client()
        )
    return _controller
