from sqlalchemy import Column, Integer, String, DateTime

from showshelf.database import Base
from showshelf.utils.clock import utcnow


class Show(Base):
    __tablename__ = "shows"
    __table_args__ = {"sqlite_autoincrement": True}  # ids werden nie wiederverwendet

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)  # NormalizedKey des Verzeichnisses
    root_key = Column(String, nullable=False, index=True)  # Library-Root, unter dem gescannt wurde

    name = Column(String, nullable=False)
    path = Column(String, nullable=False)

    last_scanned = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Show {self.name} (#{self.id})>"
