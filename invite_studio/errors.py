"""Exceptions raised by the studio core."""

from typing import Iterable, Optional


class StudioError(Exception):
    """Base class for every error the studio reports to the user."""


class InputError(StudioError):
    """An uploaded image could not be read or compressed."""

    def __init__(self, message: str, slot: Optional[str] = None):
        super().__init__(message)
        self.slot = slot


class ReencodeError(StudioError):
    """Pillow could not decode or re-encode an image."""


class AttachmentTooLargeError(StudioError):
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is too large ({size} bytes). Please select an image under {limit // (1024 * 1024)}MB."
        )
        self.size = size
        self.limit = limit


class GenerationBlockedError(StudioError):
    """Generation was requested while the current state does not allow it."""

    def __init__(self, reasons: Iterable[str]):
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons) or "Generation is not available.")


class ArtifactNotFoundError(StudioError):
    def __init__(self, artifact_id: str):
        super().__init__(f"Artifact '{artifact_id}' not found.")
        self.artifact_id = artifact_id
