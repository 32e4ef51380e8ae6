from sqlalchemy import Column, DateTime, Integer, Numeric, String, func

from menu_cache.core.database import Base


class MenuSubmission(Base):
    __tablename__ = "menu_submissions"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(255), index=True, nullable=False)
    type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False)
    items_added = Column(Integer, nullable=False, default=0)
    processing_fee = Column(Numeric(10, 2), nullable=False, default=0)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
