from sqlalchemy import Column, Integer, DateTime, ForeignKey

from showshelf.database import Base


class Progress(Base):
    __tablename__ = "progress"

    show_id = Column(Integer, ForeignKey("shows.id"), primary_key=True)
    current_episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=True)  # NULL = nie gestartet
    last_watched = Column(DateTime, nullable=True, index=True)

    def __repr__(self):
        return f"<Progress show={self.show_id} episode={self.current_episode_id}>"
