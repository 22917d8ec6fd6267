"""Catalog of wedding outfits offered for the solo and couple portraits."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .models import AttireChoices


class AttireOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    prompt: str
    subject: Literal["bride", "groom"]


BRIDE_ATTIRE: List[AttireOption] = [
    AttireOption(
        id="classic-lehenga",
        name="Classic Lehenga",
        description="A traditional, ornate lehenga in rich colors like red or maroon with heavy embroidery.",
        prompt=(
            "a beautiful, traditional and ornate Indian lehenga in rich celebratory colors like deep red "
            "or maroon, with heavy intricate embroidery and delicate complementary jewelry"
        ),
        subject="bride",
    ),
    AttireOption(
        id="modern-gown",
        name="Modern Gown",
        description="A contemporary, elegant gown with Indian motifs, often in pastel shades or ivory.",
        prompt=(
            "a contemporary, elegant fusion wedding gown blending Indian motifs with a modern silhouette, "
            "in soft pastel shades or ivory, with tasteful minimalist jewelry"
        ),
        subject="bride",
    ),
    AttireOption(
        id="anarkali-suit",
        name="Anarkali Suit",
        description="A floor-length, flowing Anarkali suit that is both royal and graceful.",
        prompt="a royal, graceful floor-length flowing Anarkali suit in rich fabric with elegant embellishments",
        subject="bride",
    ),
]

GROOM_ATTIRE: List[AttireOption] = [
    AttireOption(
        id="classic-sherwani",
        name="Classic Sherwani",
        description="A timeless, elegant sherwani in cream, gold, or beige with detailed embroidery.",
        prompt=(
            "a timeless, elegant traditional Indian sherwani in cream, gold or beige, "
            "with detailed embroidery and a royal look"
        ),
        subject="groom",
    ),
    AttireOption(
        id="indo-western-suit",
        name="Indo-Western Suit",
        description="A stylish fusion of a modern suit jacket with a traditional Indian silhouette.",
        prompt=(
            "a stylish Indo-Western suit fusing a modern tailored jacket with a traditional Indian "
            "silhouette, in a bold color like royal blue or burgundy"
        ),
        subject="groom",
    ),
    AttireOption(
        id="jodhpuri-suit",
        name="Jodhpuri Suit",
        description='A sharp, royal "bandhgala" suit that offers a sophisticated, princely look.',
        prompt='a sharp, royal Jodhpuri "bandhgala" suit with a closed-neck collar and a princely look',
        subject="groom",
    ),
]

_BY_ID: Dict[str, AttireOption] = {option.id: option for option in BRIDE_ATTIRE + GROOM_ATTIRE}


def get_option(option_id: str, subject: str) -> AttireOption:
    option = _BY_ID.get(option_id)
    if option is None or option.subject != subject:
        raise KeyError(f"Unknown {subject} attire '{option_id}'")
    return option


def resolve_attire(bride_id: Optional[str] = None, groom_id: Optional[str] = None) -> AttireChoices:
    """Turn attire ids picked by the user into prompt fragments."""
    return AttireChoices(
        bride=get_option(bride_id, "bride").prompt if bride_id else None,
        groom=get_option(groom_id, "groom").prompt if groom_id else None,
    )
