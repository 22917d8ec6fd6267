"""Named upload slots holding the user's source images."""

from enum import Enum
from typing import Dict, Optional

from .models import ImageAsset
from .selection import Availability


class SourceSlot(str, Enum):
    BRIDE = "bride"
    GROOM = "groom"
    COUPLE_PHOTO = "couple_photo"
    CARD = "card"
    INVITATION_BACKGROUND = "invitation_background"
    REFINEMENT_SEED = "refinement_seed"


class SourceInputs:
    """Zero or one image per slot."""

    def __init__(self, images: Optional[Dict[SourceSlot, ImageAsset]] = None):
        self._images: Dict[SourceSlot, ImageAsset] = dict(images or {})

    def get(self, slot: SourceSlot) -> Optional[ImageAsset]:
        asset = self._images.get(slot)
        if asset is None or not asset.payload:
            return None
        return asset

    def has(self, slot: SourceSlot) -> bool:
        return self.get(slot) is not None

    def set(self, slot: SourceSlot, asset: ImageAsset) -> None:
        self._images[slot] = asset

    def clear(self, *slots: SourceSlot) -> None:
        for slot in slots:
            self._images.pop(slot, None)

    def availability(self) -> Availability:
        return Availability(
            bride=self.has(SourceSlot.BRIDE),
            groom=self.has(SourceSlot.GROOM),
            couple_photo=self.has(SourceSlot.COUPLE_PHOTO),
        )
