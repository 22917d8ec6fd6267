"""Domain models shared by the orchestrator, history store and chat engine."""

import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "png" if self is ImageFormat.PNG else "jpg"

    @classmethod
    def for_title(cls, title: str) -> "ImageFormat":
        """Illustrations keep their transparency as PNG; everything else is JPEG."""
        return cls.PNG if "illustration" in title.lower() else cls.JPEG


class EncodedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    size: int
    format: ImageFormat


class ImageAsset(BaseModel):
    """One image at one point in time: the raw upload or generation plus its
    size-bounded encoding for the current quality."""

    model_config = ConfigDict(frozen=True)

    raw_bytes: Optional[bytes] = None
    raw_size: Optional[int] = None
    raw_mime_type: str = "image/png"
    encoded_bytes: Optional[bytes] = None
    encoded_size: Optional[int] = None
    encoded_format: Optional[ImageFormat] = None

    @classmethod
    def from_raw(cls, data: bytes, mime_type: str = "image/png") -> "ImageAsset":
        return cls(raw_bytes=data, raw_size=len(data), raw_mime_type=mime_type)

    def with_encoding(self, encoded: EncodedImage) -> "ImageAsset":
        return self.model_copy(
            update={
                "encoded_bytes": encoded.data,
                "encoded_size": encoded.size,
                "encoded_format": encoded.format,
            }
        )

    @property
    def payload(self) -> Optional[bytes]:
        return self.encoded_bytes if self.encoded_bytes is not None else self.raw_bytes

    @property
    def payload_mime_type(self) -> str:
        if self.encoded_bytes is not None and self.encoded_format is not None:
            return self.encoded_format.mime_type
        return self.raw_mime_type


class ArtifactKind(str, Enum):
    BRIDE = "bride"
    GROOM = "groom"
    COUPLE = "couple"
    INVITATION = "invitation"

    @property
    def title(self) -> str:
        if self is ArtifactKind.INVITATION:
            return "Final Wedding Invitation"
        return f"{self.value.capitalize()} Illustration"


class ArtifactVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    image: ImageAsset
    quality_factor: float = Field(0.9, ge=0.0, le=1.0)

    @property
    def quality_adjustable(self) -> bool:
        """PNG renditions are lossless and versions without raw bytes cannot be re-encoded."""
        return bool(self.image.raw_bytes) and self.image.encoded_format is not ImageFormat.PNG


class Artifact(BaseModel):
    id: str
    kind: ArtifactKind
    title: str
    versions: List[ArtifactVersion] = Field(min_length=1)
    current_version_index: int = 0

    @classmethod
    def create(cls, kind: ArtifactKind, version: ArtifactVersion, prefix: Optional[str] = None) -> "Artifact":
        artifact_id = f"{prefix or kind.value}-{uuid.uuid4().hex[:12]}"
        return cls(id=artifact_id, kind=kind, title=kind.title, versions=[version])

    @property
    def current_version(self) -> ArtifactVersion:
        return self.versions[self.current_version_index]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    attached_image: Optional[ImageAsset] = None


class AttireChoices(BaseModel):
    """Resolved attire prompt fragments for each subject."""

    bride: Optional[str] = None
    groom: Optional[str] = None


class GeneratedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"


class GenerationResult(BaseModel):
    """What one provider call produced. A successful call may carry no image."""

    model_config = ConfigDict(frozen=True)

    image: Optional[GeneratedImage] = None
    text: Optional[str] = None
    block_reason: Optional[str] = None
