"""Repository for Collection records and their image links. Caller owns the transaction."""
from __future__ import annotations
from sqlalchemy import delete, func
from sqlmodel import Session, col, desc, select
from imgsearch.models.core import Collection, CollectionImageLink, ImageRecord, utcnow


class CollectionRepository:
    def __init__(self, session: Session) -> None:
        self._s = session

    def get_by_id(self, collection_id: int) -> Collection | None:
        return self._s.get(Collection, collection_id)

    def list_by_owner(self, owner_id: str) -> list[Collection]:
        return list(self._s.exec(
            select(Collection)
            .where(Collection.owner_id == owner_id)
            .order_by(desc(Collection.created_at), desc(Collection.id))
        ).all())

    def create(
        self, *, owner_id: str, name: str, description: str = "", is_public: bool = False,
    ) -> Collection:
        collection = Collection(
            owner_id=owner_id, name=name, description=description, is_public=is_public,
        )
        self._s.add(collection)
        self._s.flush()
        return collection

    def update(self, collection: Collection, **values) -> Collection:
        for key, value in values.items():
            setattr(collection, key, value)
        collection.updated_at = utcnow()
        self._s.add(collection)
        self._s.flush()
        return collection

    def delete(self, collection: Collection) -> None:
        self._s.execute(
            delete(CollectionImageLink).where(CollectionImageLink.collection_id == collection.id)
        )
        self._s.delete(collection)
        self._s.flush()

    # --- Membership ---

    def image_count(self, collection_id: int) -> int:
        return self._s.exec(
            select(func.count()).select_from(CollectionImageLink)
            .where(CollectionImageLink.collection_id == collection_id)
        ).one()

    def list_images(self, collection_id: int) -> list[ImageRecord]:
        return list(self._s.exec(
            select(ImageRecord)
            .join(CollectionImageLink, col(CollectionImageLink.image_id) == col(ImageRecord.id))
            .where(CollectionImageLink.collection_id == collection_id)
            .order_by(desc(CollectionImageLink.added_at))
        ).all())

    def get_link(self, collection_id: int, image_id: int) -> CollectionImageLink | None:
        return self._s.get(CollectionImageLink, (collection_id, image_id))

    def add_image(self, collection_id: int, image_id: int) -> CollectionImageLink:
        link = self.get_link(collection_id, image_id)
        if link is None:
            link = CollectionImageLink(collection_id=collection_id, image_id=image_id)
            self._s.add(link)
            self._s.flush()
        return link

    def remove_image(self, collection_id: int, image_id: int) -> bool:
        link = self.get_link(collection_id, image_id)
        if link is None:
            return False
        self._s.delete(link)
        self._s.flush()
        return True

    def collection_ids_for_image(self, image_id: int) -> list[int]:
        return list(self._s.exec(
            select(CollectionImageLink.collection_id).where(CollectionImageLink.image_id == image_id)
        ).all())
