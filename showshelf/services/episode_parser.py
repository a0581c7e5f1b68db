"""
Episode Parser - Season/Episode aus Dateinamen
Erkennt Specials (OP/ED/OVA/NCOP/...) und nummerierte Episoden
"""
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# Season (optional, zweistellig) + Episode-Marker + 1-2 stellige Nummer
EPISODE_PATTERN = re.compile(
    r"(?:(?:^|S|s)(?P<s>\d{2}))?(?:_|x|E|e|EP|ep| )(?P<e>\d{1,2})(?:.bits|_| |-|\.|v|$)"
)
# Codec-, Auflösungs- und Jahreszahlen würden sonst als Episode erkannt
NOISE_PATTERN = re.compile(r"(x256|x265|\d{4}|\d{3})|10.bits")
SPECIAL_PATTERN = re.compile(
    r".*OVA.*\.|NCED.*? |NCOP.*? |(-|_| )(ED|OP|SP|no-credit_opening|no-credit_ending).*?(-|_| )"
)


@dataclass(frozen=True)
class ParsedEpisode:
    """Ergebnis des Parsens eines Dateinamens"""
    season: Optional[int]
    number: Optional[int]
    special: bool

    @property
    def label(self) -> str:
        if self.special:
            return "special"
        return f"S{self.season:02d}E{self.number:02d}"


SPECIAL = ParsedEpisode(season=None, number=None, special=True)


def parse_episode(filename: str) -> ParsedEpisode:
    """
    Extrahiert Season/Episode aus einem Dateinamen.
    Dateien ohne erkennbare Nummer gelten als Special.
    """
    name = os.path.basename(filename)

    if SPECIAL_PATTERN.search(name):
        return SPECIAL

    match = EPISODE_PATTERN.search(NOISE_PATTERN.sub("#", name))
    if not match:
        logger.debug(f"No episode number in '{name}', treating as special")
        return SPECIAL

    season = int(match.group("s")) if match.group("s") else 1
    number = int(match.group("e"))
    return ParsedEpisode(season=season, number=number, special=False)


def display_name(filename: str) -> str:
    """Dateiname ohne Endung"""
    return os.path.splitext(os.path.basename(filename))[0]


def episode_sort_key(special: bool, season: Optional[int], number: Optional[int], name: str, ident: int = 0) -> Tuple:
    """Natural order: numbered episodes by (season, number), then specials; ties by name and id."""
    if special or number is None:
        return (1, 0, 0, name, ident)
    return (0, season or 0, number, name, ident)
