from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backoffice.utils.database import Base


class SystemSetting(Base):
    """Runtime-tunable key/value switches (see utils.settings.DEFAULT_SETTINGS)."""
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    # stored as text; flags read "true"/"false", targets read as numbers
    value = Column(String(200), nullable=False)
    description = Column(Text)

    updated_by = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    updated_on = Column(DateTime, server_default=func.now(), onupdate=func.now())

    updater = relationship("User")
