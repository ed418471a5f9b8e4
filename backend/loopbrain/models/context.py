"""
Context store tables: cached context snapshots, their embeddings and summaries.
Every row carries workspace_id, the tenant boundary.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from loopbrain.core.database import Base, utcnow
from loopbrain.models.types import JSONType, VectorType, new_id


class ContextItem(Base):
    """One cached context snapshot, unique per (context_id, type, workspace_id)."""
    
    __tablename__ = "context_items"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    context_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    
    __table_args__ = (
        UniqueConstraint("context_id", "type", "workspace_id", name="uq_context_items_context"),
        Index("ix_context_items_workspace_type", "workspace_id", "type"),
        Index("ix_context_items_workspace_updated", "workspace_id", "updated_at"),
    )
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contextId": self.context_id,
            "workspaceId": self.workspace_id,
            "type": self.type,
            "title": self.title,
            "summary": self.summary,
            "data": self.data,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class ContextEmbedding(Base):
    """Vector for a context item (1:1)."""
    
    __tablename__ = "context_embeddings"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    context_item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("context_items.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    embedding: Mapped[list] = mapped_column(VectorType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class ContextSummary(Base):
    """Long-form summary for a context item (1:1)."""
    
    __tablename__ = "context_summaries"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    context_item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("context_items.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
