from datetime import datetime
from sqlalchemy import Column, DateTime, Integer, String, Text

from imageresize.database import Base

class Transient(Base):
    __tablename__ = "transients"
    key         = Column(String(191), primary_key=True)
    value       = Column(Text, nullable=False)
    # NULL = never expires
    expires_at  = Column(DateTime, nullable=True)


class Attachment(Base):
    __tablename__ = "attachments"
    id          = Column(Integer, primary_key=True)
    # Relative to the content directory
    path        = Column(String, nullable=False)
    title       = Column(String)
    created_at  = Column(DateTime, default=datetime.utcnow, nullable=False)
