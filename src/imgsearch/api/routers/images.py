"""Image endpoints: upload, browse, edit, delete and hybrid search."""
from datetime import date
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from imgsearch.api.deps import get_current_user, get_rt, get_uow
from imgsearch.api.schemas.images import (
    EmbeddingStatsRead,
    ImageList,
    ImageRead,
    ImageUpdate,
    SearchRequest,
    SearchResultsRead,
    UploadResponse,
)
from imgsearch.infra.db.repositories.image_repository import ImageFilters
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.runtime import Runtime
from imgsearch.search.hybrid_search import SearchErrorKind, SearchType
from imgsearch.services.images_service import ImagesService, IncomingFile

router = APIRouter(prefix="/images", tags=["images"])


def _search_status(result: SearchResultsRead) -> int:
    if result.search_type == SearchType.UNAVAILABLE.value:
        return 503
    if result.search_type == SearchType.AI_ERROR.value:
        return 400 if result.error_kind == SearchErrorKind.BAD_REQUEST.value else 500
    return 200


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_images(
    files: list[UploadFile] = File(...),
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> UploadResponse:
    incoming = [
        IncomingFile(
            filename=f.filename or "upload",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        )
        for f in files
    ]
    return ImagesService(uow, rt).upload(owner_id, incoming)


@router.get("", response_model=ImageList)
def list_images(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    start_date: date | None = None,
    end_date: date | None = None,
    name: str | None = None,
    location: str | None = None,
    tags: list[str] = Query(default=[]),
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> ImageList:
    filters = ImageFilters(
        start_date=start_date, end_date=end_date, name=name, location=location, tags=tags,
    )
    return ImagesService(uow, rt).list_images(owner_id, filters, page=page, limit=limit)


@router.post("/search", response_model=SearchResultsRead)
def search_images(
    payload: SearchRequest,
    response: Response,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> SearchResultsRead:
    result = ImagesService(uow, rt).search(owner_id, payload)
    response.status_code = _search_status(result)
    return result


@router.get("/embedding-stats", response_model=EmbeddingStatsRead)
def embedding_stats(
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> EmbeddingStatsRead:
    return ImagesService(uow, rt).embedding_stats(owner_id)


@router.get("/{image_id}", response_model=ImageRead)
def get_image(
    image_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> ImageRead:
    return ImagesService(uow, rt).get_image(owner_id, image_id)


@router.put("/{image_id}", response_model=ImageRead)
def update_image(
    image_id: int,
    payload: ImageUpdate,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> ImageRead:
    return ImagesService(uow, rt).update_image(owner_id, image_id, payload)


@router.delete("/{image_id}", status_code=204)
def delete_image(
    image_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
    rt: Runtime = Depends(get_rt),
) -> Response:
    ImagesService(uow, rt).delete_image(owner_id, image_id)
    return Response(status_code=204)
