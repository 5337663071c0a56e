from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from datetime import datetime, timezone
from .database import Base


def utcnow():
    return datetime.now(timezone.utc)

# ============= DOCUMENT MODEL =============

class Document(Base):
    """one document of the document store, addressed by (collection, doc_id)"""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),)

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(100), nullable=False, index=True)
    doc_id = Column(String(200), nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
