"""Builds the requests sent to the image generation provider.

Each builder returns a :class:`GenerationRequest` holding the instruction
prompt and the images attached to it, in the order the model should read
them. ``attached_roles`` tells callers (and tests) what went into a request.
"""

from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .models import ArtifactKind, AttireChoices, ChatTurn, ImageAsset, Role


class RequestKind(str, Enum):
    SOLO_BRIDE = "solo-bride"
    SOLO_GROOM = "solo-groom"
    COUPLE = "couple"
    COMBINE = "combine"
    COMPOSITE = "composite-invitation"
    REFINEMENT = "refinement-turn"


class RequestImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    data: bytes
    mime_type: str


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RequestKind
    prompt: str
    images: List[RequestImage] = []

    @property
    def attached_roles(self) -> List[str]:
        return [image.role for image in self.images]


def _attach(images: List[RequestImage], role: str, asset: Optional[ImageAsset], prefer_raw: bool = False) -> None:
    if asset is None:
        return
    if prefer_raw and asset.raw_bytes:
        images.append(RequestImage(role=role, data=asset.raw_bytes, mime_type=asset.raw_mime_type))
    elif asset.payload:
        images.append(RequestImage(role=role, data=asset.payload, mime_type=asset.payload_mime_type))


def _base_prompt(card_provided: bool) -> str:
    if card_provided:
        tone = (
            "The mood, color palette and artistic elegance of your illustration must blend seamlessly "
            "with the aesthetic of the provided wedding card image. Use warm, celebratory tones that match the invitation."
        )
    else:
        tone = "Use warm, celebratory and elegant tones suitable for a wedding invitation."

    return f"""
You are an expert wedding invitation illustrator. Create a single, cohesive, hand-illustrated artistic drawing.

**Artistic Requirements:**
- **Style:** A refined, elegant, hand-drawn illustration. It must read as polished digital art, not a photo or a filtered photo.
- **Aesthetic Integration:** {tone}
- **Output Specification:**
  - A single image.
  - No text, borders or other elements taken from the invitation card.
  - The background must be fully transparent. Do not add any color, texture or objects behind the subjects.
"""


def _attire_lines(attire: Optional[AttireChoices]):
    attire = attire or AttireChoices()
    bride = (
        f"Dress her in {attire.bride}."
        if attire.bride
        else "Dress her in a graceful traditional Indian lehenga with delicate, complementary jewelry."
    )
    groom = (
        f"Dress him in {attire.groom}."
        if attire.groom
        else "Dress him in a handsome, elegant traditional Indian sherwani."
    )
    return bride, groom


def build_portrait_request(
    kind: ArtifactKind,
    *,
    bride: Optional[ImageAsset] = None,
    groom: Optional[ImageAsset] = None,
    couple_photo: Optional[ImageAsset] = None,
    card: Optional[ImageAsset] = None,
    attire: Optional[AttireChoices] = None,
) -> GenerationRequest:
    """Solo bride, solo groom or a couple portrait drawn directly from photos."""
    card_provided = card is not None
    bride_attire, groom_attire = _attire_lines(attire)
    images: List[RequestImage] = []

    if kind is ArtifactKind.BRIDE:
        request_kind = RequestKind.SOLO_BRIDE
        goal = f"""
**Primary Goal: Recognizable Likeness of the Bride**
- Create a solo portrait of the Indian bride.
- The illustrated bride must be clearly recognizable as the person in the provided headshot.
- Pay close attention to her facial features: face shape, eyes, nose and smile.
- {bride_attire} She should look happy and celebratory.
"""
        _attach(images, "bride", bride)
    elif kind is ArtifactKind.GROOM:
        request_kind = RequestKind.SOLO_GROOM
        goal = f"""
**Primary Goal: Recognizable Likeness of the Groom**
- Create a solo portrait of the Indian groom.
- The illustrated groom must be clearly recognizable as the person in the provided headshot.
- Pay close attention to his facial features: face shape, eyes, nose and smile.
- {groom_attire} He should look happy and celebratory.
"""
        _attach(images, "groom", groom)
    elif kind is ArtifactKind.COUPLE:
        request_kind = RequestKind.COUPLE
        if couple_photo is not None:
            likeness = (
                "- A photo of the couple together is provided. Use it as the primary reference for their "
                "likeness, pose, interaction and relative heights."
            )
            _attach(images, "couple_photo", couple_photo)
        else:
            likeness = (
                "- Follow the facial features of the bride from her photo and of the groom from his photo. "
                "Capture both likenesses."
            )
            _attach(images, "bride", bride)
            _attach(images, "groom", groom)
        goal = f"""
**Primary Goal: Recognizable Likeness of the Couple**
- Create a portrait of the Indian wedding couple together.
- The illustrated couple must be clearly recognizable as the people in their photos.
{likeness}
- **Attire:**
    - **Groom:** {groom_attire}
    - **Bride:** {bride_attire}
- **Composition:** Pose them together, looking happy and celebratory.
"""
    else:
        raise ValueError(f"No portrait prompt for {kind.value}")

    _attach(images, "card", card)
    return GenerationRequest(kind=request_kind, prompt=_base_prompt(card_provided) + goal, images=images)


def build_combine_request(
    bride_illustration: ImageAsset,
    groom_illustration: ImageAsset,
    *,
    card: Optional[ImageAsset] = None,
    couple_photo: Optional[ImageAsset] = None,
) -> GenerationRequest:
    """Merge two already stylized solo portraits into one couple scene."""
    if card is not None:
        style = (
            "The mood, color palette and artistic elegance must blend seamlessly with the aesthetic "
            "of the provided wedding card image."
        )
    else:
        style = "Use warm, celebratory and elegant tones suitable for a wedding invitation."
    if couple_photo is not None:
        pose = (
            "A photo of the couple is also provided. Use it as a strong reference for their pose, "
            "interaction and overall composition."
        )
    else:
        pose = "Arrange the bride and groom together in a natural, celebratory wedding portrait pose."

    prompt = f"""
You are an expert digital artist who combines portraits. Take the two provided illustrations, one of a bride and one of a groom, and merge them into a single cohesive portrait of the couple.

**Core Instructions:**
1. **Preserve Style and Features:** Keep the exact art style, facial features, colors and attire of the individual illustrations. Do not redraw or reinterpret the characters.
2. **Combine and Compose:** {pose} They must look like they share the same scene.
3. **Aesthetic Integration:** {style}
4. **Output:** A single image of the couple. The background **must be fully transparent**. No text, borders or background color.
"""
    images: List[RequestImage] = []
    _attach(images, "bride_illustration", bride_illustration, prefer_raw=True)
    _attach(images, "groom_illustration", groom_illustration, prefer_raw=True)
    _attach(images, "couple_photo", couple_photo)
    _attach(images, "card", card)
    return GenerationRequest(kind=RequestKind.COMBINE, prompt=prompt, images=images)


_COMPOSITE_PROMPT = """
You are an expert image editor with a graphic design background. Place the couple illustration (second image) onto the wedding invitation background (first image).

**THE GOLDEN RULE: DO NOT COVER ANY TEXT.**
Every piece of text on the invitation must stay perfectly preserved and fully readable. Covering or overlapping any text is a complete failure.

**Process:**
1. **Analyze the Layout:** Find every text element on the invitation (names, dates, venue, RSVP) and treat those areas as no-go zones.
2. **Find the Safe Zone:** Locate the largest empty area where the illustration fits without touching text.
3. **Scale to Fit:** Scale the illustration down until it fits entirely inside the safe zone. Smaller is better than overlapping.
4. **Place and Blend:** Place it in the safe zone and blend its bottom edge into the background with a soft transparent fade.
5. **Final Check:** If any text is obscured, scale down further and place it again.

**Do Not:**
* Move, redraw or alter any text on the invitation.
* Change the invitation background.

**Final Output:**
* One high-quality image of the finished invitation, with exactly the dimensions of the original card.
* It must look like the illustration was professionally added to the unchanged card.
"""


def build_composite_request(background: ImageAsset, illustration: ImageAsset) -> GenerationRequest:
    """Place a finished illustration into the text-safe area of an invitation background."""
    images: List[RequestImage] = []
    _attach(images, "background", background)
    _attach(images, "illustration", illustration, prefer_raw=True)
    return GenerationRequest(kind=RequestKind.COMPOSITE, prompt=_COMPOSITE_PROMPT, images=images)


def format_transcript(turns: Sequence[ChatTurn]) -> str:
    lines = []
    for turn in turns:
        speaker = "User" if turn.role is Role.USER else "Artist"
        marker = " [Reference Image Attached]" if turn.attached_image is not None else ""
        lines.append(f"{speaker}: {turn.text}{marker}")
    return "\n".join(lines)


def build_refinement_request(current_image: ImageAsset, turns: Sequence[ChatTurn]) -> GenerationRequest:
    """One refinement turn: the whole transcript, the image being refined and
    every reference image the user has attached so far, oldest first."""
    prompt = f"""
You are an expert digital artist and image editor, refining an illustration together with a user. You have the current version of the illustration, the full conversation so far and any reference images the user shared in the chat.

**Your Task:**
1. **Read Everything:** Read the whole conversation in order and look at every provided image to understand the user's vision. Earlier messages and images are context.
2. **Apply Only the Latest Request:** Modify the illustration as asked in the latest user message. Use the reference images to guide the change, especially to improve a person's likeness.
3. **Preserve Core Identity:** Keep each person's recognizable facial features and the art style of the current illustration. Do not start from scratch.
4. **Transparent Background:** Keep the background fully transparent unless the user asked for a background.
5. **Reply (Optional):** You may add a short conversational reply confirming the change.

**Conversation History:**
{format_transcript(turns)}

Using this conversation and all provided images, modify the illustration and return the new version.
"""
    images: List[RequestImage] = []
    _attach(images, "current", current_image, prefer_raw=True)
    for turn in turns:
        if turn.role is Role.USER and turn.attached_image is not None:
            _attach(images, "reference", turn.attached_image)
    return GenerationRequest(kind=RequestKind.REFINEMENT, prompt=prompt, images=images)
