from showshelf.database import Base
from showshelf.models.config import Config
from showshelf.models.show import Show
from showshelf.models.episode import Episode
from showshelf.models.progress import Progress

__all__ = [
    "Base",
    "Config",
    "Show",
    "Episode",
    "Progress",
]
