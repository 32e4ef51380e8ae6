from sqlalchemy import Column, DateTime, Integer, String, Text, func

from menu_cache.core.database import Base


class TenantMenuData(Base):
    __tablename__ = "tenant_menu_data"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(255), unique=True, index=True, nullable=False)
    restaurant_name = Column(String, nullable=False)
    cuisine = Column(String, nullable=True)
    location = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    hours = Column(String, nullable=True)
    website = Column(String, nullable=True)
    items_json = Column(Text, nullable=False, default="[]")
    special_offers_json = Column(Text, nullable=False, default="[]")
    ai_context = Column(Text, nullable=True)
    source = Column(String, nullable=False)
    data_source = Column(String(20), nullable=False)  # scraped / manual
    last_scraped = Column(DateTime(timezone=True), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    scraping_history_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
