"""Generation orchestrator.

Turns the user's selection and uploads into the smallest set of provider
calls, runs them, and collects what came back:

1. solo bride / groom portraits, issued concurrently (also generated when only
   the couple was requested, so they can be combined);
2. the couple portrait, by combining both solos, or from the couple photo when
   the solos are not both available;
3. the final invitation, placing the best illustration onto the background.

Every call is allowed to fail on its own. Failures are collected as
user-facing strings and never abort the rest of the run.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from .history import Reencoder, make_version
from .inputs import SourceInputs, SourceSlot
from .models import Artifact, ArtifactKind, AttireChoices, GenerationResult, ImageAsset
from .prompts import (
    GenerationRequest,
    build_combine_request,
    build_composite_request,
    build_portrait_request,
)
from .provider import ImageProvider
from .reencoder import reencode_async
from .selection import SelectionState

logger = logging.getLogger(__name__)

SOLO_KINDS = (ArtifactKind.BRIDE, ArtifactKind.GROOM)
INVITATION_PRIORITY = (ArtifactKind.COUPLE, ArtifactKind.BRIDE, ArtifactKind.GROOM)

COUPLE_UNAVAILABLE = (
    "Couple illustration could not be created. Please provide either a photo of the couple, "
    "or photos of both the bride and groom."
)


class GenerationOutcome(BaseModel):
    artifacts: List[Artifact] = []
    final_invitation: Optional[Artifact] = None
    # Every solo portrait produced, requested or not, as the provider returned it.
    portraits: Dict[ArtifactKind, ImageAsset] = {}
    failures: List[str] = []

    @property
    def warning(self) -> Optional[str]:
        return "\n".join(self.failures) if self.failures else None


def _reason(error: BaseException) -> str:
    return str(error) or "Unknown reason"


class GenerationOrchestrator:
    def __init__(
        self,
        provider: ImageProvider,
        reencoder: Optional[Reencoder] = None,
        *,
        output_quality: float = 0.9,
        invitation_quality: float = 0.95,
        max_concurrency: int = 2,
    ):
        self.provider = provider
        self._reencoder = reencoder or reencode_async
        self.output_quality = output_quality
        self.invitation_quality = invitation_quality
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def _call(self, request: GenerationRequest) -> GenerationResult:
        async with self._semaphore:
            return await self.provider.request_image_edit(request)

    async def _artifact_from(
        self, result: GenerationResult, kind: ArtifactKind, quality: float, prefix: Optional[str] = None
    ) -> Optional[Artifact]:
        if result.image is None:
            return None
        version = await make_version(result.image, kind.title, quality, self._reencoder)
        return Artifact.create(kind, version, prefix=prefix)

    async def run(
        self,
        selection: SelectionState,
        inputs: SourceInputs,
        attire: Optional[AttireChoices] = None,
    ) -> GenerationOutcome:
        outcome = GenerationOutcome()
        try:
            await self._generate_portraits(selection, inputs, attire, outcome)
            if selection.want_couple:
                await self._generate_couple(inputs, attire, outcome)
            if selection.want_invitation and inputs.has(SourceSlot.INVITATION_BACKGROUND):
                await self._generate_invitation(inputs, outcome)
        except Exception as e:
            logger.exception("Generation run failed")
            outcome.failures.append(f"Failed to generate illustrations. {str(e) or 'An unknown error occurred.'}")

        for failure in outcome.failures:
            logger.warning(failure)
        return outcome

    async def _generate_portraits(
        self,
        selection: SelectionState,
        inputs: SourceInputs,
        attire: Optional[AttireChoices],
        outcome: GenerationOutcome,
    ) -> None:
        bride = inputs.get(SourceSlot.BRIDE)
        groom = inputs.get(SourceSlot.GROOM)
        card = inputs.get(SourceSlot.CARD)
        couple_needs_solos = selection.want_couple and bride is not None and groom is not None
        requested = {ArtifactKind.BRIDE: selection.want_bride, ArtifactKind.GROOM: selection.want_groom}
        headshots = {ArtifactKind.BRIDE: bride, ArtifactKind.GROOM: groom}

        subjects = [
            kind
            for kind in SOLO_KINDS
            if (requested[kind] or couple_needs_solos) and headshots[kind] is not None
        ]
        if not subjects:
            return

        requests = [
            build_portrait_request(kind, bride=bride, groom=groom, card=card, attire=attire) for kind in subjects
        ]
        results = await asyncio.gather(*(self._call(request) for request in requests), return_exceptions=True)

        for kind, result in zip(subjects, results):
            label = kind.value.capitalize()
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                outcome.failures.append(f"Failed to generate {label} portrait: {_reason(result)}")
                continue
            if result.image is None:
                outcome.failures.append(f"No image was generated for the {label}.")
                continue
            outcome.portraits[kind] = ImageAsset.from_raw(result.image.data, result.image.mime_type)
            if not requested[kind]:
                continue
            try:
                artifact = await self._artifact_from(result, kind, self.output_quality)
            except Exception as e:
                outcome.failures.append(f"Failed to generate {label} portrait: {_reason(e)}")
                continue
            outcome.artifacts.append(artifact)

    async def _generate_couple(
        self,
        inputs: SourceInputs,
        attire: Optional[AttireChoices],
        outcome: GenerationOutcome,
    ) -> None:
        couple_photo = inputs.get(SourceSlot.COUPLE_PHOTO)
        card = inputs.get(SourceSlot.CARD)
        bride_portrait = outcome.portraits.get(ArtifactKind.BRIDE)
        groom_portrait = outcome.portraits.get(ArtifactKind.GROOM)

        if bride_portrait is not None and groom_portrait is not None:
            request = build_combine_request(bride_portrait, groom_portrait, card=card, couple_photo=couple_photo)
            empty_message = "Failed to generate Couple illustration from combined portraits."
            error_prefix = "Failed to combine portraits"
        elif couple_photo is not None:
            request = build_portrait_request(ArtifactKind.COUPLE, couple_photo=couple_photo, card=card, attire=attire)
            empty_message = "Failed to generate Couple illustration from the provided photo."
            error_prefix = "Failed to generate from couple photo"
        else:
            outcome.failures.append(COUPLE_UNAVAILABLE)
            return

        try:
            result = await self._call(request)
            artifact = await self._artifact_from(result, ArtifactKind.COUPLE, self.output_quality)
        except Exception as e:
            outcome.failures.append(f"{error_prefix}: {_reason(e)}")
            return
        if artifact is None:
            outcome.failures.append(empty_message)
        else:
            outcome.artifacts.append(artifact)

    @staticmethod
    def pick_illustration(artifacts: List[Artifact]) -> Optional[ImageAsset]:
        """Current version of the best illustration to place: couple, then bride, then groom."""
        for kind in INVITATION_PRIORITY:
            for artifact in artifacts:
                if artifact.kind is kind:
                    return artifact.current_version.image
        return None

    async def _generate_invitation(self, inputs: SourceInputs, outcome: GenerationOutcome) -> None:
        illustration = self.pick_illustration(outcome.artifacts)
        if illustration is None:
            outcome.failures.append("Skipping invitation generation as no base illustrations were created.")
            return

        request = build_composite_request(inputs.get(SourceSlot.INVITATION_BACKGROUND), illustration)
        try:
            result = await self._call(request)
            artifact = await self._artifact_from(
                result, ArtifactKind.INVITATION, self.invitation_quality, prefix="final-invite"
            )
        except Exception as e:
            outcome.failures.append(f"Failed to create the final invitation: {_reason(e)}")
            return
        if artifact is None:
            outcome.failures.append("The AI failed to generate the final invitation image.")
        else:
            outcome.final_invitation = artifact
