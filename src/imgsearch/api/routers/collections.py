"""Collection endpoints."""
from fastapi import APIRouter, Depends, Response
from imgsearch.api.deps import get_current_user, get_uow
from imgsearch.api.schemas.collections import (
    CollectionCreate,
    CollectionDetail,
    CollectionList,
    CollectionRead,
    CollectionUpdate,
)
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.services.collections_service import CollectionsService

router = APIRouter(prefix="/collections", tags=["collections"])


@router.get("", response_model=CollectionList)
def list_collections(
    owner_id: str = Depends(get_current_user), uow: UnitOfWork = Depends(get_uow),
) -> CollectionList:
    return CollectionsService(uow).list_collections(owner_id)


@router.post("", response_model=CollectionRead, status_code=201)
def create_collection(
    payload: CollectionCreate,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> CollectionRead:
    return CollectionsService(uow).create_collection(owner_id, payload)


@router.get("/{collection_id}", response_model=CollectionDetail)
def get_collection(
    collection_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> CollectionDetail:
    return CollectionsService(uow).get_collection(owner_id, collection_id)


@router.put("/{collection_id}", response_model=CollectionRead)
def update_collection(
    collection_id: int,
    payload: CollectionUpdate,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> CollectionRead:
    return CollectionsService(uow).update_collection(owner_id, collection_id, payload)


@router.delete("/{collection_id}", status_code=204)
def delete_collection(
    collection_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> Response:
    CollectionsService(uow).delete_collection(owner_id, collection_id)
    return Response(status_code=204)


@router.post("/{collection_id}/images/{image_id}", response_model=CollectionRead)
def add_image(
    collection_id: int,
    image_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> CollectionRead:
    return CollectionsService(uow).add_image(owner_id, collection_id, image_id)


@router.delete("/{collection_id}/images/{image_id}", response_model=CollectionRead)
def remove_image(
    collection_id: int,
    image_id: int,
    owner_id: str = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_uow),
) -> CollectionRead:
    return CollectionsService(uow).remove_image(owner_id, collection_id, image_id)
