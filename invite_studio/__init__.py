"""Invite Studio: AI wedding illustration generation and refinement."""

from .conversation import ConversationSession, RefinementConversation, SessionState
from .history import ArtifactHistoryStore, DownloadFile
from .inputs import SourceInputs, SourceSlot
from .models import (
    Artifact,
    ArtifactKind,
    ArtifactVersion,
    AttireChoices,
    ChatTurn,
    ImageAsset,
    ImageFormat,
    Role,
)
from .orchestrator import GenerationOrchestrator, GenerationOutcome
from .selection import Availability, SelectionState, reconcile_selection
from .studio import Studio

__all__ = [
    "Artifact",
    "ArtifactHistoryStore",
    "ArtifactKind",
    "ArtifactVersion",
    "AttireChoices",
    "Availability",
    "ChatTurn",
    "ConversationSession",
    "DownloadFile",
    "GenerationOrchestrator",
    "GenerationOutcome",
    "ImageAsset",
    "ImageFormat",
    "RefinementConversation",
    "Role",
    "SelectionState",
    "SessionState",
    "SourceInputs",
    "SourceSlot",
    "Studio",
    "reconcile_selection",
]

__version__ = "1.0.0"
