"""Application state for one user of the studio.

``Studio`` owns the uploads, the output selection, the artifact gallery and
the refinement chat, and wires them to the orchestrator. Every input change
re-runs selection reconciliation against the previous availability.
"""

import logging
from functools import partial
from typing import List, Optional

from .config import Settings, get_settings
from .conversation import RefinementConversation
from .errors import GenerationBlockedError, InputError, ReencodeError
from .history import ArtifactHistoryStore
from .inputs import SourceInputs, SourceSlot
from .models import Artifact, ArtifactKind, ArtifactVersion, AttireChoices, ImageAsset, ImageFormat
from .orchestrator import GenerationOrchestrator, GenerationOutcome
from .provider import ImageProvider
from .reencoder import reencode_async, sniff_mime_type
from .selection import Option, SelectionState, apply_toggle, generation_blockers, reconcile_selection

logger = logging.getLogger(__name__)

MAIN_INPUTS = (SourceSlot.BRIDE, SourceSlot.GROOM, SourceSlot.COUPLE_PHOTO, SourceSlot.CARD)


class Studio:
    def __init__(self, provider: ImageProvider, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._reencoder = partial(reencode_async, max_edge=self.settings.max_edge)
        self.inputs = SourceInputs()
        self.selection = SelectionState()
        self.store = ArtifactHistoryStore(self._reencoder)
        self.orchestrator = GenerationOrchestrator(
            provider,
            self._reencoder,
            output_quality=self.settings.output_quality,
            invitation_quality=self.settings.invitation_quality,
            max_concurrency=self.settings.max_concurrency,
        )
        self.chat = RefinementConversation(
            self.store,
            provider,
            self._reencoder,
            max_attachment_bytes=self.settings.max_attachment_bytes,
            output_quality=self.settings.output_quality,
        )
        self.is_generating = False

    # -- inputs -------------------------------------------------------------

    def _reconcile(self, previous) -> None:
        self.selection = reconcile_selection(previous, self.inputs.availability(), self.selection)

    async def set_input(self, slot: SourceSlot, data: bytes, mime_type: Optional[str] = None) -> ImageAsset:
        """Store an upload. Main inputs are compressed; the invitation
        background is kept exactly as supplied."""
        try:
            mime_type = mime_type or sniff_mime_type(data)
            asset = ImageAsset.from_raw(data, mime_type)
            if slot is not SourceSlot.INVITATION_BACKGROUND:
                encoded = await self._reencoder(data, self.settings.input_quality, ImageFormat.JPEG)
                asset = asset.with_encoding(encoded)
        except ReencodeError as e:
            logger.warning("Could not read %s upload: %s", slot.value, e)
            raise InputError("Failed to compress image. Please try a different file.", slot=slot.value) from e

        previous = self.inputs.availability()
        self.inputs.set(slot, asset)
        self._reconcile(previous)
        return asset

    def clear_input(self, *slots: SourceSlot) -> None:
        previous = self.inputs.availability()
        self.inputs.clear(*slots)
        self._reconcile(previous)

    # -- selection ----------------------------------------------------------

    def toggle(self, option: Option, value: bool) -> SelectionState:
        self.selection = apply_toggle(self.selection, self.inputs.availability(), option, value)
        return self.selection

    def blockers(self) -> List[str]:
        return generation_blockers(
            self.selection,
            self.inputs.availability(),
            self.inputs.has(SourceSlot.INVITATION_BACKGROUND),
            self.is_generating,
        )

    # -- generation ---------------------------------------------------------

    async def generate(self, attire: Optional[AttireChoices] = None) -> GenerationOutcome:
        blockers = self.blockers()
        if blockers:
            raise GenerationBlockedError(blockers)

        self.is_generating = True
        self.store.reset()
        try:
            outcome = await self.orchestrator.run(self.selection, self.inputs, attire)
        finally:
            self.is_generating = False
        self.store.publish(outcome.artifacts, outcome.final_invitation)
        logger.info(
            "Generation finished: %d artifact(s), invitation=%s, %d failure(s)",
            len(outcome.artifacts),
            outcome.final_invitation is not None,
            len(outcome.failures),
        )
        return outcome

    def promote_refinement_seed(self, kind: ArtifactKind) -> Artifact:
        """Add the uploaded refinement image to the gallery so it can be refined.

        The main inputs and selection are cleared so the next generation run
        does not pick up stale uploads.
        """
        if self.is_generating:
            raise GenerationBlockedError(["A generation run is already in progress."])
        if kind is ArtifactKind.INVITATION:
            raise ValueError("Only bride, groom or couple illustrations can be added for refinement.")
        seed = self.inputs.get(SourceSlot.REFINEMENT_SEED)
        if seed is None:
            raise InputError("Upload an image to refine first.", slot=SourceSlot.REFINEMENT_SEED.value)

        quality = 1.0 if seed.encoded_format is ImageFormat.PNG else 0.9
        artifact = Artifact.create(
            kind, ArtifactVersion(title=kind.title, image=seed, quality_factor=quality), prefix="refine"
        )

        self.inputs.clear(*MAIN_INPUTS, SourceSlot.REFINEMENT_SEED)
        self.selection = SelectionState(want_invitation=self.selection.want_invitation)
        self.store.add_to_gallery(artifact)
        return artifact
