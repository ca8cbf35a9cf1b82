"""
Chat conversation model for ContractLens.

Author: ContractLens Team
Version: 1.0.0
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from contractlens.database import Base


class ChatConversation(Base):
    """The chat transcript one user has with the assistant about one analysis."""

    __tablename__ = "chat_conversations"

    id = Column(Integer, primary_key=True, index=True)
    analysis_id = Column(Integer, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    # List of {"id", "role", "content", "timestamp"}; replaced wholesale on every write
    messages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    analysis = relationship("Analysis", back_populates="conversations")

    def to_dict(self):
        return {
            "messages": list(self.messages or []),
            "conversation_created_at": self.created_at.isoformat() if self.created_at else None,
            "conversation_updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
