"""
Conversation Service
Client for the conversational AI collaborator and reply normalization
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

import httpx
import openai
from openai import AsyncOpenAI

from voice_receptionist.core.config import settings
from voice_receptionist.core.exceptions import ConversationServiceError
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.tenant import TenantCallConfig

logger = get_logger(__name__)

SAFE_DEFAULT_REPLY = "Disculpa, no he podido procesar bien lo que me has dicho. ¿Podrías repetirlo?"

REFERENCE_DOCUMENT_LIMIT = 2000


class ReplyShape(str, Enum):
    TEXT = "text"
    RESPONSE = "response"
    CONTENT = "content"
    UNRECOGNIZED = "unrecognized"


class NormalizedReply(NamedTuple):
    text: str
    shape: ReplyShape


def _usable(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def normalize_reply(raw: Any) -> NormalizedReply:
    """
    Reduce a collaborator reply to text

    Accepted shapes are a plain string, {"response": str} and
    {"content": str}. Anything else yields SAFE_DEFAULT_REPLY.
    """
    if isinstance(raw, str):
        if _usable(raw):
            return NormalizedReply(raw.strip(), ReplyShape.TEXT)
    elif isinstance(raw, dict):
        if _usable(raw.get("response")):
            return NormalizedReply(raw["response"].strip(), ReplyShape.RESPONSE)
        if _usable(raw.get("content")):
            return NormalizedReply(raw["content"].strip(), ReplyShape.CONTENT)

    return NormalizedReply(SAFE_DEFAULT_REPLY, ReplyShape.UNRECOGNIZED)


def build_business_context(
    tenant_config: TenantCallConfig,
    history: Optional[List[Dict[str, str]]] = None
) -> Dict[str, Any]:
    """
    Assemble the business context sent with every caller message

    Args:
        tenant_config: Tenant snapshot
        history: Optional earlier turns as {"speaker", "text"} dicts

    Returns:
        JSON-serializable context payload
    """
    info = tenant_config.company_info
    context: Dict[str, Any] = {
        "companyInfo": {
            "companyName": tenant_config.company_name,
            "description": info.description,
            "phone": info.phone,
            "email": info.email,
            "website": info.website,
            "address": info.address,
        },
        "faqs": [{"question": f.question, "answer": f.answer} for f in tenant_config.faqs],
        "referenceDocuments": [
            {"name": d.name, "content": d.content[:REFERENCE_DOCUMENT_LIMIT]}
            for d in tenant_config.reference_documents
        ],
        "businessHours": {
            "summary": tenant_config.business_hours.describe(),
            "isOpen": tenant_config.business_hours.is_open(),
        },
        "language": tenant_config.language,
    }
    if history:
        context["history"] = history
    return context


class ConversationClient(ABC):
    """Request/reply collaborator producing the assistant's next line"""

    @abstractmethod
    async def reply(
        self,
        tenant_id: str,
        session_id: str,
        message: str,
        context: Dict[str, Any]
    ) -> Any:
        """
        Returns the raw reply; pass it through normalize_reply

        Raises:
            ConversationServiceError: If the collaborator cannot answer
        """


class HttpConversationClient(ConversationClient):
    """Posts each message to an automation webhook"""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        self.url = url or settings.conversation_webhook_url
        self.timeout = timeout or settings.conversation_timeout_seconds

    async def reply(self, tenant_id: str, session_id: str, message: str, context: Dict[str, Any]) -> Any:
        if not self.url:
            raise ConversationServiceError("Conversation webhook URL is not configured")

        payload = {
            "tenantId": tenant_id,
            "sessionId": session_id,
            "message": message,
            "context": context,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ConversationServiceError(
                f"Conversation webhook failed: {e}",
                details={"session_id": session_id}
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text


class OpenAIConversationClient(ConversationClient):
    """Answers with an OpenAI chat completion grounded in the business context"""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.conversation_timeout_seconds
        )
        self.model = model or settings.openai_model

    @staticmethod
    def build_system_prompt(context: Dict[str, Any]) -> str:
        info = context.get("companyInfo", {})
        lines = [
            f"Eres la recepcionista telefónica de {info.get('companyName')}.",
            "Responde en frases cortas y naturales, aptas para ser leídas en voz alta.",
            f"Idioma de la conversación: {context.get('language')}.",
            f"Horario de atención: {context.get('businessHours', {}).get('summary')}.",
            "Cuando el cliente se despida, despídete con 'hasta luego' o 'adiós'.",
        ]
        for label, key in (("Descripción", "description"), ("Teléfono", "phone"),
                           ("Email", "email"), ("Web", "website"), ("Dirección", "address")):
            if info.get(key):
                lines.append(f"{label}: {info[key]}")

        faqs = context.get("faqs") or []
        if faqs:
            lines.append("Preguntas frecuentes:")
            for index, faq in enumerate(faqs, 1):
                lines.append(f"{index}. Pregunta: {faq['question']}\n   Respuesta: {faq['answer']}")

        for doc in context.get("referenceDocuments") or []:
            lines.append(f"Documento '{doc['name']}':\n{doc['content']}")

        return "\n".join(lines)

    async def reply(self, tenant_id: str, session_id: str, message: str, context: Dict[str, Any]) -> Any:
        messages = [{"role": "system", "content": self.build_system_prompt(context)}]
        for turn in context.get("history") or []:
            role = "assistant" if turn.get("speaker") == "assistant" else "user"
            messages.append({"role": role, "content": turn.get("text", "")})
        messages.append({"role": "user", "content": message})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.7,
                max_tokens=200
            )
        except openai.APIError as e:
            raise ConversationServiceError(
                f"OpenAI API error: {e}",
                details={"session_id": session_id}
            )

        return {"content": response.choices[0].message.content}


# Singleton instance
_conversation_client: Optional[ConversationClient] = None


def get_conversation_client() -> ConversationClient:
    """Get the ConversationClient singleton for the configured provider"""
    global _conversation_client
    if _conversation_client is None:
        if settings.conversation_provider == "openai":
            _conversation_client = OpenAIConversationClient()
        else:
            _conversation_client = HttpConversationClient()
    return _conversation_client
