"""
Fehlerklassen der Bibliothek

Scanner-Fehler (AccessError) werden lokal behandelt, alles andere geht
unverändert an den Aufrufer.
"""


class ShowShelfError(Exception):
    """Basisklasse aller ShowShelf-Fehler"""


class AccessError(ShowShelfError):
    """Unreadable filesystem entry hit while scanning."""

    def __init__(self, path: str, reason: str = "", show_path: str = None):
        self.path = path
        self.reason = reason
        self.show_path = show_path  # Show, dessen Unterbaum unvollständig gelesen wurde
        message = f"Cannot read {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ScanCancelled(ShowShelfError):
    """Scan was aborted before reconciliation started."""


class PathEncodingError(ShowShelfError, ValueError):
    """Path cannot be decoded into a comparable key."""


class PersistenceError(ShowShelfError):
    """Backend transaction failed and was rolled back."""


class NotFoundError(ShowShelfError):
    def __init__(self, kind: str, ident, detail: str = ""):
        self.kind = kind
        self.ident = ident
        message = f"{kind} {ident} not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvariantViolation(ShowShelfError):
    """Stored state contradicts an invariant the engine maintains.

    Raised instead of repairing the data so that the earlier bug stays visible.
    """
