"""Exception types shared by the engine, loader and web layer."""

from typing import Any, List, Optional


class ReconError(Exception):
    """Base class for user-facing reconciliation errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidRequestError(ReconError):
    """Malformed request shape; nothing was computed."""

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.details = details or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.details:
            payload["details"] = self.details
        return payload


class SessionNotFoundError(ReconError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__("Session not found. Upload files again.")
        self.session_id = session_id


class NothingToExportError(ReconError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__("Nothing to export. Run reconciliation first.")
        self.session_id = session_id


class CsvParseError(ReconError):
    """Uploaded file could not be read as CSV."""


class ConfigError(Exception):
    """Invalid environment configuration."""
