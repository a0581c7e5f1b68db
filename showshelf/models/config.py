from sqlalchemy import Column, Integer, String, DateTime, Text
import json

from showshelf.database import Base
from showshelf.utils.clock import utcnow


class Config(Base):
    __tablename__ = "config"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(Text)
    module = Column(String, default="core")  # "core", "scanner", "logging"
    data_type = Column(String, default="string")  # string, integer, boolean, json
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    description = Column(String, nullable=True)

    def __repr__(self):
        return f"<Config {self.key}={(self.value or '')[:20]}...>"

    @property
    def typed_value(self):
        """Gibt value als korrekten Typ zurück"""
        if self.value is None:
            return None
        if self.data_type in ("bool", "boolean"):
            return self.value.lower() in ("true", "1", "yes")
        elif self.data_type in ("int", "integer"):
            return int(self.value)
        elif self.data_type == "json":
            return json.loads(self.value)
        return self.value
