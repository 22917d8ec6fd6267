import asyncio

import pytest

from invite_studio.models import ArtifactKind, GenerationResult, ImageAsset, ImageFormat
from invite_studio.inputs import SourceInputs, SourceSlot
from invite_studio.orchestrator import COUPLE_UNAVAILABLE, GenerationOrchestrator, GenerationOutcome
from invite_studio.prompts import RequestKind
from invite_studio.selection import SelectionState

from conftest import FakeProvider, image_result, make_artifact, make_image_bytes


def upload(fmt: str = "JPEG", color=(90, 90, 90, 255)) -> ImageAsset:
    data = make_image_bytes(fmt, color=color)
    return ImageAsset.from_raw(data, f"image/{fmt.lower()}")


def make_inputs(*slots: SourceSlot) -> SourceInputs:
    inputs = SourceInputs()
    for slot in slots:
        inputs.set(slot, upload())
    return inputs


async def run(provider, selection, inputs, **kwargs) -> GenerationOutcome:
    return await GenerationOrchestrator(provider, **kwargs).run(selection, inputs)


@pytest.mark.asyncio
async def test_couple_only_is_combined_from_solo_portraits():
    provider = FakeProvider()
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM)

    outcome = await run(provider, SelectionState(want_couple=True), inputs)

    assert sorted(provider.kinds[:2]) == sorted([RequestKind.SOLO_BRIDE, RequestKind.SOLO_GROOM])
    assert provider.kinds[2] is RequestKind.COMBINE
    assert len(provider.kinds) == 3
    assert [artifact.kind for artifact in outcome.artifacts] == [ArtifactKind.COUPLE]
    assert outcome.artifacts[0].title == "Couple Illustration"
    assert outcome.artifacts[0].current_version.image.encoded_format is ImageFormat.PNG
    assert set(outcome.portraits) == {ArtifactKind.BRIDE, ArtifactKind.GROOM}
    assert outcome.failures == []
    assert outcome.warning is None


@pytest.mark.asyncio
async def test_combine_receives_raw_solo_portraits():
    bride_result = image_result(color=(255, 0, 0, 255))
    provider = FakeProvider({RequestKind.SOLO_BRIDE: bride_result})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM, SourceSlot.CARD)

    await run(provider, SelectionState(want_couple=True), inputs)

    combine = provider.requests[-1]
    assert combine.attached_roles == ["bride_illustration", "groom_illustration", "card"]
    assert combine.images[0].data == bride_result.image.data


@pytest.mark.asyncio
async def test_requested_solos_and_couple_are_all_kept():
    provider = FakeProvider()
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM)

    outcome = await run(provider, SelectionState(want_bride=True, want_groom=True, want_couple=True), inputs)

    assert len(provider.kinds) == 3
    assert [artifact.kind for artifact in outcome.artifacts] == [
        ArtifactKind.BRIDE,
        ArtifactKind.GROOM,
        ArtifactKind.COUPLE,
    ]
    assert len({artifact.id for artifact in outcome.artifacts}) == 3


@pytest.mark.asyncio
async def test_couple_without_any_photos_fails_without_calls():
    provider = FakeProvider()
    outcome = await run(provider, SelectionState(want_couple=True), SourceInputs())
    assert provider.requests == []
    assert outcome.artifacts == []
    assert outcome.failures == [COUPLE_UNAVAILABLE]


@pytest.mark.asyncio
async def test_one_solo_failing_does_not_stop_the_other():
    provider = FakeProvider({RequestKind.SOLO_BRIDE: RuntimeError("quota exceeded")})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM)

    outcome = await run(provider, SelectionState(want_bride=True, want_groom=True, want_couple=True), inputs)

    assert [artifact.kind for artifact in outcome.artifacts] == [ArtifactKind.GROOM]
    assert outcome.failures == [
        "Failed to generate Bride portrait: quota exceeded",
        COUPLE_UNAVAILABLE,
    ]
    assert RequestKind.COMBINE not in provider.kinds
    assert outcome.warning == "\n".join(outcome.failures)


@pytest.mark.asyncio
async def test_solo_failure_falls_back_to_couple_photo():
    provider = FakeProvider({RequestKind.SOLO_GROOM: GenerationResult(text="I can't draw that.")})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM, SourceSlot.COUPLE_PHOTO)

    outcome = await run(provider, SelectionState(want_couple=True), inputs)

    assert provider.kinds[-1] is RequestKind.COUPLE
    assert provider.requests[-1].attached_roles == ["couple_photo"]
    assert [artifact.kind for artifact in outcome.artifacts] == [ArtifactKind.COUPLE]
    assert outcome.failures == ["No image was generated for the Groom."]


@pytest.mark.asyncio
async def test_couple_photo_alone_is_used_directly():
    provider = FakeProvider()
    inputs = make_inputs(SourceSlot.COUPLE_PHOTO)

    outcome = await run(provider, SelectionState(want_couple=True), inputs)

    assert provider.kinds == [RequestKind.COUPLE]
    assert [artifact.kind for artifact in outcome.artifacts] == [ArtifactKind.COUPLE]


@pytest.mark.asyncio
async def test_empty_couple_result_is_reported():
    provider = FakeProvider({RequestKind.COUPLE: GenerationResult()})
    outcome = await run(provider, SelectionState(want_couple=True), make_inputs(SourceSlot.COUPLE_PHOTO))
    assert outcome.artifacts == []
    assert outcome.failures == ["Failed to generate Couple illustration from the provided photo."]


@pytest.mark.asyncio
async def test_combine_error_is_reported():
    provider = FakeProvider({RequestKind.COMBINE: RuntimeError("timeout")})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM)
    outcome = await run(provider, SelectionState(want_couple=True), inputs)
    assert outcome.artifacts == []
    assert outcome.failures == ["Failed to combine portraits: timeout"]


@pytest.mark.asyncio
async def test_error_without_message_gets_a_reason():
    provider = FakeProvider({RequestKind.SOLO_BRIDE: RuntimeError()})
    outcome = await run(provider, SelectionState(want_bride=True), make_inputs(SourceSlot.BRIDE))
    assert outcome.failures == ["Failed to generate Bride portrait: Unknown reason"]


@pytest.mark.asyncio
async def test_solo_calls_run_concurrently():
    class SlowProvider(FakeProvider):
        def __init__(self):
            super().__init__()
            self.in_flight = 0
            self.peak = 0

        async def request_image_edit(self, request):
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            await asyncio.sleep(0.01)
            self.in_flight -= 1
            return await super().request_image_edit(request)

    provider = SlowProvider()
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM)
    await run(provider, SelectionState(want_bride=True, want_groom=True), inputs)
    assert provider.peak == 2


@pytest.mark.asyncio
async def test_invitation_uses_couple_illustration_first():
    couple_result = image_result(color=(0, 200, 0, 255))
    provider = FakeProvider({RequestKind.COMBINE: couple_result})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.GROOM, SourceSlot.INVITATION_BACKGROUND)
    selection = SelectionState(want_bride=True, want_groom=True, want_couple=True, want_invitation=True)

    outcome = await run(provider, selection, inputs)

    composite = provider.requests[-1]
    assert composite.kind is RequestKind.COMPOSITE
    assert composite.attached_roles == ["background", "illustration"]
    assert composite.images[1].data == couple_result.image.data

    invitation = outcome.final_invitation
    assert invitation is not None
    assert invitation.id.startswith("final-invite-")
    assert invitation.title == "Final Wedding Invitation"
    assert invitation.current_version.quality_factor == 0.95
    assert invitation.current_version.image.encoded_format is ImageFormat.JPEG
    assert invitation not in outcome.artifacts
    assert len(outcome.artifacts) == 3


def test_pick_illustration_priority():
    bride = make_artifact(ArtifactKind.BRIDE)
    groom = make_artifact(ArtifactKind.GROOM)
    couple = make_artifact(ArtifactKind.COUPLE)
    pick = GenerationOrchestrator.pick_illustration
    assert pick([groom, bride, couple]) == couple.current_version.image
    assert pick([groom, bride]) == bride.current_version.image
    assert pick([groom]) == groom.current_version.image
    assert pick([]) is None


@pytest.mark.asyncio
async def test_invitation_skipped_without_illustrations():
    provider = FakeProvider({RequestKind.SOLO_BRIDE: GenerationResult()})
    inputs = make_inputs(SourceSlot.BRIDE, SourceSlot.INVITATION_BACKGROUND)

    outcome = await run(provider, SelectionState(want_bride=True, want_invitation=True), inputs)

    assert RequestKind.COMPOSITE not in provider.kinds
    assert outcome.final_invitation is None
    assert outcome.failures == [
        "No image was generated for the Bride.",
        "Skipping invitation generation as no base illustrations were created.",
    ]


@pytest.mark.asyncio
async def test_invitation_errors_are_reported():
    inputs = make_inputs(SourceSlot.GROOM, SourceSlot.INVITATION_BACKGROUND)
    selection = SelectionState(want_groom=True, want_invitation=True)

    failing = FakeProvider({RequestKind.COMPOSITE: RuntimeError("blocked")})
    outcome = await run(failing, selection, inputs)
    assert outcome.failures == ["Failed to create the final invitation: blocked"]
    assert [artifact.kind for artifact in outcome.artifacts] == [ArtifactKind.GROOM]

    empty = FakeProvider({RequestKind.COMPOSITE: GenerationResult(text="no")})
    outcome = await run(empty, selection, inputs)
    assert outcome.failures == ["The AI failed to generate the final invitation image."]


@pytest.mark.asyncio
async def test_invitation_needs_background():
    provider = FakeProvider()
    outcome = await run(provider, SelectionState(want_groom=True, want_invitation=True), make_inputs(SourceSlot.GROOM))
    assert RequestKind.COMPOSITE not in provider.kinds
    assert outcome.final_invitation is None
    assert outcome.failures == []


@pytest.mark.asyncio
async def test_unexpected_errors_are_caught_at_the_top():
    class BrokenProvider:
        async def request_image_edit(self, request):
            return None

    outcome = await run(BrokenProvider(), SelectionState(want_bride=True), make_inputs(SourceSlot.BRIDE))
    assert outcome.artifacts == []
    assert len(outcome.failures) == 1
    assert outcome.failures[0].startswith("Failed to generate illustrations. ")
