"""Collections use-case service."""
from __future__ import annotations
from imgsearch.api.schemas.collections import (
    CollectionCreate,
    CollectionDetail,
    CollectionList,
    CollectionRead,
    CollectionUpdate,
)
from imgsearch.api.schemas.images import ImageRead
from imgsearch.domain.exceptions import ForbiddenError, NotFoundError
from imgsearch.infra.db.repositories.collection_repository import CollectionRepository
from imgsearch.infra.db.repositories.image_repository import ImageRepository
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.models.core import Collection


class CollectionsService:
    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow
        self._repo = CollectionRepository(uow.session)

    def _read(self, collection: Collection) -> CollectionRead:
        return CollectionRead.model_validate(collection).model_copy(
            update={"image_count": self._repo.image_count(collection.id)}
        )

    def _load(self, owner_id: str, collection_id: int, *, write: bool = False) -> Collection:
        collection = self._repo.get_by_id(collection_id)
        if collection is None:
            raise NotFoundError(f"Collection {collection_id} not found")
        if collection.owner_id != owner_id and (write or not collection.is_public):
            raise ForbiddenError(f"Collection {collection_id} belongs to another user")
        return collection

    def create_collection(self, owner_id: str, payload: CollectionCreate) -> CollectionRead:
        collection = self._repo.create(
            owner_id=owner_id,
            name=payload.name,
            description=payload.description,
            is_public=payload.is_public,
        )
        self._uow.commit()
        return self._read(collection)

    def list_collections(self, owner_id: str) -> CollectionList:
        items = [self._read(c) for c in self._repo.list_by_owner(owner_id)]
        return CollectionList(items=items, total=len(items))

    def get_collection(self, owner_id: str, collection_id: int) -> CollectionDetail:
        collection = self._load(owner_id, collection_id)
        images = [ImageRead.model_validate(r) for r in self._repo.list_images(collection_id)]
        return CollectionDetail(**self._read(collection).model_dump(), images=images)

    def update_collection(
        self, owner_id: str, collection_id: int, payload: CollectionUpdate,
    ) -> CollectionRead:
        collection = self._load(owner_id, collection_id, write=True)
        values = payload.model_dump(exclude_unset=True, exclude_none=True)
        if values:
            self._repo.update(collection, **values)
            self._uow.commit()
        return self._read(collection)

    def delete_collection(self, owner_id: str, collection_id: int) -> None:
        collection = self._load(owner_id, collection_id, write=True)
        self._repo.delete(collection)
        self._uow.commit()

    def add_image(self, owner_id: str, collection_id: int, image_id: int) -> CollectionRead:
        collection = self._load(owner_id, collection_id, write=True)
        image = ImageRepository(self._uow.session).get_by_id(image_id)
        if image is None:
            raise NotFoundError(f"Image {image_id} not found")
        if image.owner_id != owner_id:
            raise ForbiddenError(f"Image {image_id} belongs to another user")
        self._repo.add_image(collection_id, image_id)
        self._uow.commit()
        return self._read(collection)

    def remove_image(self, owner_id: str, collection_id: int, image_id: int) -> CollectionRead:
        collection = self._load(owner_id, collection_id, write=True)
        if not self._repo.remove_image(collection_id, image_id):
            raise NotFoundError(f"Image {image_id} is not in collection {collection_id}")
        self._uow.commit()
        return self._read(collection)
