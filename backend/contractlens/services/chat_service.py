"""
Chat service for ContractLens.

Answers follow-up questions about an analysis by streaming the model's reply
as server-sent events. A conversation is only written once the model stream
has finished, so a failed reply leaves no half-written exchange behind.

Author: ContractLens Team
Version: 1.0.0
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from contractlens.config import Constants, settings
from contractlens.database import SessionLocal, session_scope
from contractlens.exceptions import ModelTransportError
from contractlens.llm_client import stream_chat_completion
from contractlens.models.analysis import Analysis
from contractlens.models.chat import ChatConversation

# Configure logging
logger = logging.getLogger(__name__)

CHAT_INSTRUCTIONS = """Instructions:
- Answer questions about the document analysis in a helpful, professional manner
- Reference specific parts of the document when relevant
- Explain legal concepts in plain English
- If asked about something not in the analysis, say that you can only discuss the provided analysis
- Keep responses concise but informative
- Never make up information that is not present in the analysis"""


def sse_frame(payload: Any) -> str:
    """Format one server-sent event."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


def build_system_message(analysis: Analysis, context_chars: int) -> Dict[str, str]:
    """
    Build the system message that grounds the assistant in one analysis.

    Args:
        analysis (Analysis): Stored analysis
        context_chars (int): How much of the document text to include

    Returns:
        dict: System chat message
    """
    obligations = analysis.key_obligations or []
    obligations_text = "\n".join(f"- {item}" for item in obligations) or "No obligations identified"
    risk_text = json.dumps(analysis.risk_assessment, indent=2) if analysis.risk_assessment else "No risk assessment available"
    excerpt = (analysis.document_content or "")[:context_chars]

    content = (
        "You are a legal AI assistant helping users understand their document analysis. "
        "You have access to the following analysis data:\n\n"
        f"**Document Summary:**\n{analysis.summary or 'No summary available'}\n\n"
        f"**Key Obligations:**\n{obligations_text}\n\n"
        f"**Risk Assessment:**\n{risk_text}\n\n"
        f"**Document Content (excerpt):**\n{excerpt}\n\n"
        f"{CHAT_INSTRUCTIONS}"
    )
    return {"role": "system", "content": content}


def _message(role: str, content: str) -> Dict[str, str]:
    return {
        "id": f"{role}_{uuid.uuid4().hex}",
        "role": role,
        "content": content,
        "timestamp": datetime.utcnow().isoformat(),
    }


class ChatService:
    """
    Service class for per-analysis chat conversations.
    """

    def __init__(
        self,
        stream_fn: Optional[Callable[..., Iterator[str]]] = None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        """Initialize the chat service."""
        self.stream_fn = stream_fn or stream_chat_completion
        self.session_factory = session_factory or SessionLocal

    def get_conversation(self, db: Session, analysis_id: int, owner_id: str) -> Optional[ChatConversation]:
        return (
            db.query(ChatConversation)
            .filter(ChatConversation.analysis_id == analysis_id, ChatConversation.owner_id == owner_id)
            .first()
        )

    def get_messages(self, db: Session, analysis_id: int, owner_id: str) -> Dict[str, Any]:
        conversation = self.get_conversation(db, analysis_id, owner_id)
        if conversation is None:
            return {"messages": [], "conversation_created_at": None, "conversation_updated_at": None}
        return conversation.to_dict()

    def clear_conversation(self, db: Session, analysis_id: int, owner_id: str) -> bool:
        """Delete a conversation; returns False when there was none."""
        conversation = self.get_conversation(db, analysis_id, owner_id)
        if conversation is None:
            return False
        db.delete(conversation)
        db.commit()
        logger.info(f"Cleared chat conversation for analysis {analysis_id}")
        return True

    def stream_reply(self, db: Session, analysis: Analysis, owner_id: str, message: str) -> Iterator[str]:
        """
        Start a streamed reply to ``message``.

        The prompt and history are read immediately; the returned iterator
        only touches the database through its own session, after the model
        stream has ended.

        Args:
            db (Session): Request database session
            analysis (Analysis): Analysis the user is asking about
            owner_id (str): Asking user
            message (str): The user's question

        Returns:
            Iterator[str]: SSE frames ending with ``[DONE]`` or an error frame
        """
        conversation = self.get_conversation(db, analysis.id, owner_id)
        history = list(conversation.messages or []) if conversation else []

        prompt_messages: List[Dict[str, str]] = [build_system_message(analysis, settings.chat_context_chars)]
        prompt_messages.extend({"role": item["role"], "content": item["content"]} for item in history)
        prompt_messages.append({"role": "user", "content": message})

        return self._generate(analysis.id, owner_id, message, prompt_messages)

    def _generate(self, analysis_id: int, owner_id: str, message: str, prompt_messages) -> Iterator[str]:
        parts: List[str] = []
        try:
            for delta in self.stream_fn(
                messages=prompt_messages,
                model=settings.chat_model,
                temperature=settings.chat_temperature,
                max_tokens=settings.chat_max_tokens,
            ):
                parts.append(delta)
                yield sse_frame({"content": delta})
        except ModelTransportError as e:
            logger.error(f"Chat stream for analysis {analysis_id} failed: {e.message}")
            yield sse_frame({"error": e.message})
            return

        self._persist_exchange(analysis_id, owner_id, message, "".join(parts))
        yield sse_frame(Constants.STREAM_DONE_SENTINEL)

    def _persist_exchange(self, analysis_id: int, owner_id: str, question: str, answer: str):
        """Append the user message and the assembled reply in one commit."""
        try:
            with session_scope(self.session_factory) as session:
                conversation = self.get_conversation(session, analysis_id, owner_id)
                if conversation is None:
                    conversation = ChatConversation(analysis_id=analysis_id, owner_id=owner_id, messages=[])
                    session.add(conversation)

                conversation.messages = list(conversation.messages or []) + [
                    _message("user", question),
                    _message("assistant", answer),
                ]
        except Exception as e:
            logger.error(f"Failed to save chat exchange for analysis {analysis_id}: {e}")
            raise
        logger.info(f"Saved chat exchange for analysis {analysis_id}")
