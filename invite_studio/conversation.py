"""Conversational refinement of a stored artifact.

A session is bound to one artifact. Each user turn sends the whole transcript,
the artifact's current image and every reference image attached so far; an
image in the reply becomes a new version of the artifact, text becomes an
assistant turn. The transcript only ever grows.
"""

import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .errors import AttachmentTooLargeError, InputError, ReencodeError
from .history import ArtifactHistoryStore, Reencoder, make_version
from .models import ChatTurn, ImageAsset, Role
from .prompts import build_refinement_request
from .provider import ImageProvider
from .reencoder import reencode_async, sniff_mime_type

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024


class SessionState(str, Enum):
    CLOSED = "closed"
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


class ConversationSession(BaseModel):
    target_artifact_id: Optional[str] = None
    turns: List[ChatTurn] = []
    pending_attachment: Optional[ImageAsset] = None
    is_awaiting_reply: bool = False
    is_open: bool = False

    @property
    def state(self) -> SessionState:
        if not self.is_open:
            return SessionState.CLOSED
        if self.is_awaiting_reply:
            return SessionState.AWAITING_REPLY
        return SessionState.IDLE


class RefinementConversation:
    def __init__(
        self,
        store: ArtifactHistoryStore,
        provider: ImageProvider,
        reencoder: Optional[Reencoder] = None,
        *,
        max_attachment_bytes: int = MAX_ATTACHMENT_BYTES,
        output_quality: float = 0.9,
    ):
        self.store = store
        self.provider = provider
        self._reencoder = reencoder or reencode_async
        self.max_attachment_bytes = max_attachment_bytes
        self.output_quality = output_quality
        self.session = ConversationSession()

    def open(self, artifact_id: str) -> ConversationSession:
        self.store.require(artifact_id)
        self.session = ConversationSession(target_artifact_id=artifact_id, is_open=True)
        return self.session

    def close(self) -> None:
        self.session = ConversationSession()

    def attach(self, data: bytes, mime_type: Optional[str] = None) -> bool:
        """Stage a reference image for the next message.

        Oversized or unreadable files are rejected without touching the session.
        Returns ``False`` when the session is not idle.
        """
        if len(data) > self.max_attachment_bytes:
            raise AttachmentTooLargeError(len(data), self.max_attachment_bytes)
        if self.session.state is not SessionState.IDLE:
            return False
        if not mime_type:
            try:
                mime_type = sniff_mime_type(data)
            except ReencodeError as e:
                raise InputError(str(e), slot="attachment") from e
        self.session.pending_attachment = ImageAsset.from_raw(data, mime_type)
        return True

    def remove_attachment(self) -> bool:
        if self.session.state is not SessionState.IDLE:
            return False
        self.session.pending_attachment = None
        return True

    @staticmethod
    def _reply(session: ConversationSession, text: str) -> None:
        session.turns = session.turns + [ChatTurn(role=Role.ASSISTANT, text=text)]

    async def send(self, text: str) -> List[ChatTurn]:
        """Send a user message; returns the turns added by this call."""
        session = self.session
        if session.state is not SessionState.IDLE:
            return []
        if not text.strip() and session.pending_attachment is None:
            return []

        user_turn = ChatTurn(role=Role.USER, text=text, attached_image=session.pending_attachment)
        session.turns = session.turns + [user_turn]
        session.pending_attachment = None
        session.is_awaiting_reply = True
        turns_before = len(session.turns) - 1

        try:
            await self._refine(session)
        except Exception as e:
            logger.warning("Refinement of %s failed: %s", session.target_artifact_id, e)
            message = str(e) or "An unknown error occurred during refinement."
            self._reply(session, f"Sorry, an error occurred: {message}")
        finally:
            session.is_awaiting_reply = False

        return session.turns[turns_before:]

    async def _refine(self, session: ConversationSession) -> None:
        artifact = self.store.get(session.target_artifact_id) if session.target_artifact_id else None
        if artifact is None:
            raise LookupError("Target image for refinement not found.")
        current = artifact.current_version.image
        if not current.raw_bytes and not current.payload:
            raise ValueError("Could not get image data for refinement.")

        request = build_refinement_request(current, session.turns)
        result = await self.provider.request_image_edit(request)

        if result.image is not None:
            title = f"{artifact.title} V{len(artifact.versions) + 1}"
            version = await make_version(result.image, title, self.output_quality, self._reencoder)
            self.store.append_version(artifact.id, version)
            if result.text:
                self._reply(session, result.text)
        elif result.text:
            self._reply(
                session,
                f"The AI responded, but didn't return a new image:\n\n\"{result.text}\"\n\n"
                "Please try rephrasing your request."
            )
        else:
            raise ValueError("The AI did not return a new image. Please try rephrasing your request.")
