"""
Candidate endpoints.
"""

from fastapi import APIRouter, Query, Request

from api.deps import AdminWorkspace, CurrentWorkspace
from schemas.admin import CommandResult
from schemas.election import Candidate, CandidateCreate, NormalizedImageResponse
from services.ballot_service import list_candidates
from services.image_normalizer import ImageNormalizer

router = APIRouter()


@router.get("", response_model=list[Candidate])
async def get_candidates(
    workspace: CurrentWorkspace,
    post: str | None = Query(None, description="Case-insensitive post filter"),
) -> list[Candidate]:
    return await list_candidates(workspace.ledger, post)


@router.post("", response_model=CommandResult)
async def add_candidate(request: CandidateCreate, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.add_candidate(request.name, request.party, request.post, request.image_ref)


@router.delete("/{candidate_id}", response_model=CommandResult)
async def delete_candidate(candidate_id: int, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.delete_candidate(candidate_id)


@router.post("/image", response_model=NormalizedImageResponse)
async def normalize_image(request: Request, _workspace: AdminWorkspace) -> NormalizedImageResponse:
    """
    Normalize a raw image upload for use as a candidate portrait.

    The request body is the image itself; its Content-Type must be an image
    type. The response carries the data URL to pass as ``image_ref``.
    """
    raw = await request.body()
    image = ImageNormalizer().normalize(raw, request.headers.get("content-type", ""))
    return NormalizedImageResponse(width=image.width, height=image.height, data_url=image.data_url)
