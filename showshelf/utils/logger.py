import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional


def default_logs_dir() -> Path:
    return Path(os.getenv("SHOWSHELF_LOG_DIR", "logs"))


class LineRotatingFileHandler(logging.handlers.BaseRotatingHandler):
    """
    Rotiert nach maxLines Log-Einträgen statt nach Dateigröße.
    showshelf.log.1 ist das jüngste Backup, höchstens backupCount Dateien bleiben.
    Die Datei wird erst beim ersten Eintrag geöffnet (delay).
    """

    def __init__(self, filename, maxLines=500, backupCount=5, encoding="utf-8", delay=True):
        super().__init__(filename, "a", encoding=encoding, delay=delay)
        self.maxLines = maxLines
        self.backupCount = backupCount
        self.lineCount = self._count_lines()

    def _count_lines(self) -> int:
        path = Path(self.baseFilename)
        if not path.exists():
            return 0
        with path.open("r", encoding=self.encoding, errors="replace") as f:
            return sum(1 for _ in f)

    def shouldRollover(self, record) -> bool:
        return self.maxLines > 0 and self.lineCount >= self.maxLines

    def emit(self, record):
        super().emit(record)
        self.lineCount += 1

    def _backup(self, index: int) -> str:
        return self.rotation_filename(f"{self.baseFilename}.{index}")

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None

        if self.backupCount > 0:
            for i in range(self.backupCount - 1, 0, -1):
                if os.path.exists(self._backup(i)):
                    os.replace(self._backup(i), self._backup(i + 1))
            if os.path.exists(self._backup(1)):
                os.remove(self._backup(1))
            self.rotate(self.baseFilename, self._backup(1))
        elif os.path.exists(self.baseFilename):
            os.remove(self.baseFilename)

        self.lineCount = 0
        if not self.delay:
            self.stream = self._open()


# Handler, die setup_logging installiert hat
_handlers = []


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> Path:
    """Setup logging to file + console, returns the log file path"""
    global _handlers

    root = logging.getLogger()
    root.setLevel(log_level)

    # Erneuter Aufruf ersetzt die eigenen Handler statt sie zu verdoppeln
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    logs_dir = Path(log_dir) if log_dir else default_logs_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "showshelf.log"
    file_handler = LineRotatingFileHandler(
        log_file,
        maxLines=500,
        backupCount=5,
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    root.addHandler(console_handler)
    root.addHandler(file_handler)
    _handlers = [console_handler, file_handler]

    root.info(f"✓ Logging initialized - Level: {log_level}, File: {log_file}")
    return log_file


def change_log_level_runtime(new_level: str) -> bool:
    """Ändere Log-Level zur Laufzeit"""
    if not _handlers:
        return False

    try:
        new_level = new_level.upper()
        logging.getLogger().setLevel(new_level)
        for handler in _handlers:
            handler.setLevel(new_level)
    except ValueError as e:
        logging.getLogger(__name__).error(f"Failed to change log level: {e}")
        return False

    logging.getLogger(__name__).info(f"Log-Level changed to {new_level}")
    return True
