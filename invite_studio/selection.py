"""Which outputs the user asked for, and which ones their inputs allow."""

from typing import List, Literal

from pydantic import BaseModel

Option = Literal["bride", "groom", "couple", "invitation"]


class Availability(BaseModel):
    bride: bool = False
    groom: bool = False
    couple_photo: bool = False

    @property
    def couple(self) -> bool:
        return (self.bride and self.groom) or self.couple_photo


class SelectionState(BaseModel):
    want_bride: bool = False
    want_groom: bool = False
    want_couple: bool = False
    want_invitation: bool = False

    @property
    def any_portrait(self) -> bool:
        return self.want_bride or self.want_groom or self.want_couple


def reconcile_selection(previous: Availability, current: Availability, selection: SelectionState) -> SelectionState:
    """Adjust the selection after an input slot changed.

    Options that just became available are switched on; options whose
    prerequisite went away are switched off. The invitation flag is left alone.
    """
    want_bride = selection.want_bride
    want_groom = selection.want_groom
    want_couple = selection.want_couple

    if current.bride and not previous.bride:
        want_bride = True
    if current.groom and not previous.groom:
        want_groom = True
    if current.couple and not previous.couple:
        want_couple = True
    if current.couple_photo and not previous.couple_photo:
        want_couple = True

    return selection.model_copy(
        update={
            "want_bride": want_bride and current.bride,
            "want_groom": want_groom and current.groom,
            "want_couple": want_couple and current.couple,
        }
    )


def apply_toggle(selection: SelectionState, availability: Availability, option: Option, value: bool) -> SelectionState:
    """A user toggle. Disabled options can be cleared but never set."""
    allowed = {
        "bride": availability.bride,
        "groom": availability.groom,
        "couple": availability.couple,
        "invitation": True,
    }[option]
    return selection.model_copy(update={f"want_{option}": value and allowed})


def generation_blockers(
    selection: SelectionState,
    availability: Availability,
    has_background: bool,
    is_generating: bool = False,
) -> List[str]:
    reasons = []
    if is_generating:
        reasons.append("A generation run is already in progress.")
    if not selection.any_portrait:
        reasons.append("Select at least one illustration to generate.")
    if selection.want_bride and not availability.bride:
        reasons.append("Upload a photo of the bride.")
    if selection.want_groom and not availability.groom:
        reasons.append("Upload a photo of the groom.")
    if selection.want_couple and not availability.couple:
        reasons.append("Upload a couple photo, or photos of both the bride and groom.")
    if selection.want_invitation and not has_background:
        reasons.append("Upload an invitation background.")
    return reasons
