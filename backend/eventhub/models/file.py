"""
Metadata for an uploaded file. The bytes live in the storage backend under `filename`.
"""

from sqlalchemy import Column, ForeignKey, Integer, String

from eventhub.db.base import Base, TimestampMixin


class File(Base, TimestampMixin):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    original_name = Column(String(255), nullable=False)
    filename = Column(String(255), unique=True, nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<File(id={self.id}, filename={self.filename})>"
