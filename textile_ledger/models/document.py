from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from textile_ledger.core.database import Base


class Document(Base):
    """One stored entity, keyed by its collection name and immutable id."""
    __tablename__ = "documents"

    collection = Column(String(50), primary_key=True)
    id = Column(String(120), primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Document {self.collection}/{self.id}>"


class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(120), primary_key=True)
    value = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())
