from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey

from showshelf.database import Base
from showshelf.utils.clock import utcnow


class Episode(Base):
    __tablename__ = "episodes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)  # NormalizedKey der Datei
    show_id = Column(Integer, ForeignKey("shows.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    path = Column(String, nullable=False)

    season = Column(Integer, nullable=True)
    number = Column(Integer, nullable=True)
    special = Column(Boolean, default=False, nullable=False)

    size = Column(Integer, nullable=True)
    mtime = Column(Float, nullable=True)

    last_seen = Column(DateTime, default=utcnow)

    def __repr__(self):
        if self.special:
            return f"<Episode special: {self.name}>"
        return f"<Episode S{self.season or 0:02d}E{self.number or 0:02d}: {self.name}>"
