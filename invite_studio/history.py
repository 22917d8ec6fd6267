"""Versioned storage of generated artifacts.

The store owns the gallery (an ordered list of artifacts) and the single
"final invitation" slot. Versions are append-only; the only in-place change a
version ever sees is a new encoding for a new quality factor.
"""

import itertools
import logging
import re
from typing import Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .errors import ArtifactNotFoundError, ReencodeError
from .models import Artifact, ArtifactVersion, EncodedImage, GeneratedImage, ImageAsset, ImageFormat
from .reencoder import reencode_async

logger = logging.getLogger(__name__)

Reencoder = Callable[[bytes, float, ImageFormat], Awaitable[EncodedImage]]
Direction = Literal["next", "prev"]


class DownloadFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    media_type: str


def slugify(title: str) -> str:
    return re.sub(r"\s+", "-", title.strip().lower())


async def make_version(image: GeneratedImage, title: str, quality: float, reencoder: Reencoder) -> ArtifactVersion:
    """Wrap a generated image as a version, encoded as PNG or JPEG depending on its title."""
    encoded = await reencoder(image.data, quality, ImageFormat.for_title(title))
    asset = ImageAsset.from_raw(image.data, image.mime_type).with_encoding(encoded)
    return ArtifactVersion(title=title, image=asset, quality_factor=quality)


class ArtifactHistoryStore:
    def __init__(self, reencoder: Optional[Reencoder] = None):
        self._reencoder = reencoder or reencode_async
        self.gallery: List[Artifact] = []
        self.final_invitation: Optional[Artifact] = None
        self._edit_tokens: Dict[Tuple[str, int], int] = {}
        self._token_counter = itertools.count(1)

    # -- collection ---------------------------------------------------------

    def artifacts(self) -> List[Artifact]:
        if self.final_invitation is None:
            return list(self.gallery)
        return self.gallery + [self.final_invitation]

    def get(self, artifact_id: str) -> Optional[Artifact]:
        for artifact in self.artifacts():
            if artifact.id == artifact_id:
                return artifact
        return None

    def require(self, artifact_id: str) -> Artifact:
        artifact = self.get(artifact_id)
        if artifact is None:
            raise ArtifactNotFoundError(artifact_id)
        return artifact

    def reset(self) -> None:
        self.gallery = []
        self.final_invitation = None
        self._edit_tokens.clear()

    def publish(self, artifacts: List[Artifact], final_invitation: Optional[Artifact] = None) -> None:
        self.gallery = list(artifacts)
        self.final_invitation = final_invitation

    def add_to_gallery(self, artifact: Artifact) -> None:
        self.gallery = [artifact] + self.gallery

    def _replace(self, updated: Artifact) -> None:
        if self.final_invitation is not None and self.final_invitation.id == updated.id:
            self.final_invitation = updated
            return
        self.gallery = [updated if artifact.id == updated.id else artifact for artifact in self.gallery]

    # -- versions -----------------------------------------------------------

    def append_version(self, artifact_id: str, version: ArtifactVersion) -> bool:
        """Add a version and move the cursor to it. Unknown ids are ignored."""
        artifact = self.get(artifact_id)
        if artifact is None:
            logger.info("Dropping new version for missing artifact %s", artifact_id)
            return False
        versions = artifact.versions + [version]
        self._replace(artifact.model_copy(update={"versions": versions, "current_version_index": len(versions) - 1}))
        return True

    def navigate(self, artifact_id: str, direction: Direction) -> Artifact:
        artifact = self.require(artifact_id)
        index = artifact.current_version_index
        if direction == "next" and index < len(artifact.versions) - 1:
            index += 1
        elif direction == "prev" and index > 0:
            index -= 1
        if index != artifact.current_version_index:
            artifact = artifact.model_copy(update={"current_version_index": index})
            self._replace(artifact)
        return artifact

    def _replace_version(self, artifact: Artifact, index: int, version: ArtifactVersion) -> None:
        versions = list(artifact.versions)
        versions[index] = version
        self._replace(artifact.model_copy(update={"versions": versions}))

    def record_quality(self, artifact_id: str, version_index: int, quality: float) -> Optional[ArtifactVersion]:
        """First half of a quality edit: store the new factor right away.

        Returns ``None`` when the version cannot be re-encoded.
        """
        if not 0.0 <= quality <= 1.0:
            raise ValueError(f"quality must be within [0, 1], got {quality}")
        artifact = self.require(artifact_id)
        if not 0 <= version_index < len(artifact.versions):
            raise IndexError(f"{artifact_id} has no version {version_index + 1}")
        version = artifact.versions[version_index]
        if not version.quality_adjustable:
            logger.debug("Version %d of %s cannot be re-encoded", version_index, artifact_id)
            return None
        recorded = version.model_copy(update={"quality_factor": quality})
        self._replace_version(artifact, version_index, recorded)
        return recorded

    async def set_quality(self, artifact_id: str, version_index: int, quality: float) -> ArtifactVersion:
        recorded = self.record_quality(artifact_id, version_index, quality)
        if recorded is None:
            return self.require(artifact_id).versions[version_index]

        key = (artifact_id, version_index)
        token = next(self._token_counter)
        self._edit_tokens[key] = token

        fmt = recorded.image.encoded_format or ImageFormat.JPEG
        try:
            encoded = await self._reencoder(recorded.image.raw_bytes, quality, fmt)
        except ReencodeError as e:
            logger.warning("Re-encode of %s v%d failed: %s", artifact_id, version_index + 1, e)
            raise ReencodeError("Failed to re-compress the generated image.") from e

        artifact = self.get(artifact_id)
        if artifact is None or self._edit_tokens.get(key) != token:
            logger.debug("Discarding stale re-encode for %s v%d", artifact_id, version_index + 1)
            return recorded if artifact is None else artifact.versions[version_index]

        current = artifact.versions[version_index]
        updated = current.model_copy(update={"image": current.image.with_encoding(encoded)})
        self._replace_version(artifact, version_index, updated)
        return updated

    def download(self, artifact_id: str) -> Optional[DownloadFile]:
        artifact = self.require(artifact_id)
        version = artifact.current_version
        if not version.image.encoded_bytes:
            return None
        fmt = version.image.encoded_format or ImageFormat.JPEG
        filename = f"{slugify(artifact.title)}-v{artifact.current_version_index + 1}.{fmt.extension}"
        return DownloadFile(filename=filename, content=version.image.encoded_bytes, media_type=fmt.mime_type)
