import logging
from typing import List, Literal, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from invite_studio.attire import BRIDE_ATTIRE, GROOM_ATTIRE, AttireOption, resolve_attire
from invite_studio.config import get_settings
from invite_studio.conversation import ConversationSession
from invite_studio.errors import (
    ArtifactNotFoundError,
    AttachmentTooLargeError,
    GenerationBlockedError,
    InputError,
    ReencodeError,
    StudioError,
)
from invite_studio.inputs import SourceSlot
from invite_studio.models import Artifact, ArtifactKind, ChatTurn, ImageAsset
from invite_studio.provider import GeminiImageProvider
from invite_studio.reencoder import decode_image_payload, format_bytes
from invite_studio.studio import Studio


# --- 1. Pydantic Models ---
class ImagePayload(BaseModel):
    image: Optional[str] = Field(None, description="Base64 string or data URI of the image.")
    url: Optional[str] = Field(None, description="Direct link to an image, fetched server-side.")

class InputStatus(BaseModel):
    slot: SourceSlot
    mimeType: str
    originalSize: int
    compressedSize: Optional[int] = None
    originalSizeLabel: str
    compressedSizeLabel: Optional[str] = None

class SelectionPayload(BaseModel):
    bride: Optional[bool] = None
    groom: Optional[bool] = None
    couple: Optional[bool] = None
    invitation: Optional[bool] = None

class SelectionResponse(BaseModel):
    bride: bool
    groom: bool
    couple: bool
    invitation: bool
    brideAvailable: bool
    groomAvailable: bool
    coupleAvailable: bool
    canGenerate: bool
    blockers: List[str]

class GeneratePayload(BaseModel):
    brideAttire: Optional[str] = BRIDE_ATTIRE[0].id
    groomAttire: Optional[str] = GROOM_ATTIRE[0].id

class VersionSummary(BaseModel):
    index: int
    title: str
    qualityFactor: float
    qualityAdjustable: bool
    format: Optional[str] = None
    size: Optional[int] = None
    sizeLabel: Optional[str] = None

class ArtifactSummary(BaseModel):
    id: str
    kind: ArtifactKind
    title: str
    currentVersionIndex: int
    versionCount: int
    versions: List[VersionSummary]

class GenerateResponse(BaseModel):
    artifacts: List[ArtifactSummary]
    finalInvitation: Optional[ArtifactSummary] = None
    warning: Optional[str] = Field(None, description="Newline-joined failures; non-fatal.")

class GalleryResponse(BaseModel):
    artifacts: List[ArtifactSummary]
    finalInvitation: Optional[ArtifactSummary] = None

class NavigatePayload(BaseModel):
    direction: Literal["next", "prev"]

class QualityPayload(BaseModel):
    quality: float = Field(..., ge=0.1, le=1.0, description="Slider value, 0.10 to 1.00 in steps of 0.05.")

class PromotePayload(BaseModel):
    kind: Literal["bride", "groom", "couple"]

class ChatOpenPayload(BaseModel):
    artifactId: str

class ChatAttachmentPayload(BaseModel):
    image: str = Field(..., description="Base64 string or data URI of the reference image.")
    name: Optional[str] = None

class ChatMessagePayload(BaseModel):
    text: str = ""

class ChatTurnView(BaseModel):
    role: str
    text: str
    hasImage: bool

class ChatResponse(BaseModel):
    state: str
    targetArtifactId: Optional[str] = None
    turns: List[ChatTurnView]
    hasAttachment: bool
    artifact: Optional[ArtifactSummary] = None


# --- 2. Helpers ---
def summarize(artifact: Optional[Artifact]) -> Optional[ArtifactSummary]:
    if artifact is None:
        return None
    versions = []
    for index, version in enumerate(artifact.versions):
        image = version.image
        versions.append(VersionSummary(
            index=index,
            title=version.title,
            qualityFactor=version.quality_factor,
            qualityAdjustable=version.quality_adjustable,
            format=image.encoded_format.value if image.encoded_format else None,
            size=image.encoded_size,
            sizeLabel=format_bytes(image.encoded_size) if image.encoded_size else None,
        ))
    return ArtifactSummary(
        id=artifact.id,
        kind=artifact.kind,
        title=artifact.title,
        currentVersionIndex=artifact.current_version_index,
        versionCount=len(artifact.versions),
        versions=versions,
    )

def input_status(slot: SourceSlot, asset: ImageAsset) -> InputStatus:
    return InputStatus(
        slot=slot,
        mimeType=asset.payload_mime_type,
        originalSize=asset.raw_size or 0,
        compressedSize=asset.encoded_size,
        originalSizeLabel=format_bytes(asset.raw_size),
        compressedSizeLabel=format_bytes(asset.encoded_size) if asset.encoded_size else None,
    )

def turn_view(turn: ChatTurn) -> ChatTurnView:
    return ChatTurnView(role=turn.role.value, text=turn.text, hasImage=turn.attached_image is not None)

def to_http_error(error: StudioError) -> HTTPException:
    if isinstance(error, ArtifactNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, GenerationBlockedError):
        return HTTPException(status_code=409, detail=error.reasons)
    if isinstance(error, AttachmentTooLargeError):
        return HTTPException(status_code=413, detail=str(error))
    if isinstance(error, InputError):
        return HTTPException(status_code=400, detail={"slot": error.slot, "message": str(error)})
    if isinstance(error, ReencodeError):
        return HTTPException(status_code=422, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))

async def fetch_remote_image(url: str) -> bytes:
    headers = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
        "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    }
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(url, follow_redirects=True, timeout=15, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HTTPException(status_code=400, detail=f"Image server error: {e.response.status_code}")
        except httpx.RequestError as e:
            raise HTTPException(status_code=400, detail=f"Failed to fetch image: {e}")
    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="URL is not a direct image link.")
    return response.content


# --- 3. FastAPI Application Setup ---
def create_app(studio: Optional[Studio] = None) -> FastAPI:
    if studio is None:
        studio = Studio(GeminiImageProvider())

    app = FastAPI(
        title="Invite Studio API",
        description="Illustrates a bride and groom, composes the couple, places it on an invitation and refines any result through chat.",
        version="1.0.0",
    )
    app.state.studio = studio
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def selection_response() -> SelectionResponse:
        availability = studio.inputs.availability()
        blockers = studio.blockers()
        selection = studio.selection
        return SelectionResponse(
            bride=selection.want_bride,
            groom=selection.want_groom,
            couple=selection.want_couple,
            invitation=selection.want_invitation,
            brideAvailable=availability.bride,
            groomAvailable=availability.groom,
            coupleAvailable=availability.couple,
            canGenerate=not blockers,
            blockers=blockers,
        )

    def chat_response(session: ConversationSession) -> ChatResponse:
        target = studio.store.get(session.target_artifact_id) if session.target_artifact_id else None
        return ChatResponse(
            state=session.state.value,
            targetArtifactId=session.target_artifact_id,
            turns=[turn_view(turn) for turn in session.turns],
            hasAttachment=session.pending_attachment is not None,
            artifact=summarize(target),
        )

    # --- 4. Inputs & Selection ---
    @app.get("/attire", response_model=List[AttireOption])
    async def list_attire():
        return BRIDE_ATTIRE + GROOM_ATTIRE

    @app.put("/inputs/{slot}", response_model=InputStatus)
    async def upload_input(slot: SourceSlot, payload: ImagePayload):
        if payload.url:
            data, mime_type = await fetch_remote_image(payload.url), None
        elif payload.image:
            try:
                data, mime_type = decode_image_payload(payload.image)
            except ReencodeError as e:
                raise HTTPException(status_code=400, detail={"slot": slot.value, "message": str(e)})
        else:
            raise HTTPException(status_code=400, detail="Provide either 'image' or 'url'.")
        try:
            asset = await studio.set_input(slot, data, mime_type)
        except StudioError as e:
            raise to_http_error(e)
        return input_status(slot, asset)

    @app.delete("/inputs/{slot}", response_model=SelectionResponse)
    async def clear_input(slot: SourceSlot):
        studio.clear_input(slot)
        return selection_response()

    @app.get("/selection", response_model=SelectionResponse)
    async def get_selection():
        return selection_response()

    @app.put("/selection", response_model=SelectionResponse)
    async def update_selection(payload: SelectionPayload):
        for option in ("bride", "groom", "couple", "invitation"):
            value = getattr(payload, option)
            if value is not None:
                studio.toggle(option, value)
        return selection_response()

    # --- 5. Generation & Gallery ---
    @app.post("/generate", response_model=GenerateResponse)
    async def generate(payload: Optional[GeneratePayload] = None):
        payload = payload or GeneratePayload()
        try:
            attire = resolve_attire(payload.brideAttire, payload.groomAttire)
        except KeyError as e:
            raise HTTPException(status_code=400, detail=str(e.args[0]))
        try:
            outcome = await studio.generate(attire)
        except StudioError as e:
            raise to_http_error(e)
        return GenerateResponse(
            artifacts=[summarize(artifact) for artifact in outcome.artifacts],
            finalInvitation=summarize(outcome.final_invitation),
            warning=outcome.warning,
        )

    @app.get("/artifacts", response_model=GalleryResponse)
    async def list_artifacts():
        return GalleryResponse(
            artifacts=[summarize(artifact) for artifact in studio.store.gallery],
            finalInvitation=summarize(studio.store.final_invitation),
        )

    @app.post("/artifacts/{artifact_id}/navigate", response_model=ArtifactSummary)
    async def navigate(artifact_id: str, payload: NavigatePayload):
        try:
            return summarize(studio.store.navigate(artifact_id, payload.direction))
        except StudioError as e:
            raise to_http_error(e)

    @app.put("/artifacts/{artifact_id}/versions/{index}/quality", response_model=ArtifactSummary)
    async def set_quality(artifact_id: str, index: int, payload: QualityPayload):
        try:
            await studio.store.set_quality(artifact_id, index, payload.quality)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except StudioError as e:
            raise to_http_error(e)
        return summarize(studio.store.get(artifact_id))

    @app.get(
        "/artifacts/{artifact_id}/download",
        response_class=Response,
        responses={200: {"content": {"image/png": {}, "image/jpeg": {}}, "description": "The current version of the artifact."}},
    )
    async def download(artifact_id: str):
        try:
            file = studio.store.download(artifact_id)
        except StudioError as e:
            raise to_http_error(e)
        if file is None:
            raise HTTPException(status_code=404, detail="No encoded image is available for download.")
        return Response(
            content=file.content,
            media_type=file.media_type,
            headers={"Content-Disposition": f'attachment; filename="{file.filename}"'},
        )

    @app.post("/refine/promote", response_model=ArtifactSummary)
    async def promote(payload: PromotePayload):
        try:
            artifact = studio.promote_refinement_seed(ArtifactKind(payload.kind))
        except StudioError as e:
            raise to_http_error(e)
        return summarize(artifact)

    # --- 6. Refinement Chat ---
    @app.get("/chat", response_model=ChatResponse)
    async def get_chat():
        return chat_response(studio.chat.session)

    @app.post("/chat/open", response_model=ChatResponse)
    async def open_chat(payload: ChatOpenPayload):
        try:
            session = studio.chat.open(payload.artifactId)
        except StudioError as e:
            raise to_http_error(e)
        return chat_response(session)

    @app.delete("/chat", response_model=ChatResponse)
    async def close_chat():
        studio.chat.close()
        return chat_response(studio.chat.session)

    @app.post("/chat/attachment", response_model=ChatResponse)
    async def attach(payload: ChatAttachmentPayload):
        try:
            data, mime_type = decode_image_payload(payload.image)
            studio.chat.attach(data, mime_type)
        except StudioError as e:
            raise to_http_error(e)
        return chat_response(studio.chat.session)

    @app.delete("/chat/attachment", response_model=ChatResponse)
    async def remove_attachment():
        studio.chat.remove_attachment()
        return chat_response(studio.chat.session)

    @app.post("/chat/messages", response_model=ChatResponse)
    async def send_message(payload: ChatMessagePayload):
        await studio.chat.send(payload.text)
        return chat_response(studio.chat.session)

    return app


app = create_app()

# --- 7. Run the Application ---
if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="127.0.0.1", port=8000)
