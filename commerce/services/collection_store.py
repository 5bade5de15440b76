"""
Base class for the domain stores.

Each domain store owns one FileStore and works in pydantic models; all
read-modify-write cycles go through FileStore.transaction().
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic.alias_generators import to_camel

from ..models.base import Document, build_model, parse_timestamp, utc_now_iso
from ..stores.file_store import FileStore
from ..utils.exceptions import NotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

D = TypeVar("D", bound=Document)


class CollectionStore(Generic[D]):
    """Common lookups and mutations for one collection of documents"""

    model: Type[D]
    entity_name = "Document"

    def __init__(self, store: FileStore[D]):
        self.store = store

    def initialize(self) -> None:
        self.store.initialize()

    def get_all(self) -> List[D]:
        return self.store.models()

    def get_by_id(self, doc_id: str) -> Optional[D]:
        for doc in self.get_all():
            if doc.id == doc_id:
                return doc
        return None

    def require(self, doc_id: str) -> D:
        doc = self.get_by_id(doc_id)
        if doc is None:
            raise NotFoundError(f"{self.entity_name} not found")
        return doc

    def find(self, predicate: Callable[[D], bool]) -> List[D]:
        return [doc for doc in self.get_all() if predicate(doc)]

    def count(self) -> int:
        return len(self.get_all())

    def _insert(self, doc: D) -> D:
        with self.store.transaction() as documents:
            documents.append(doc.to_record())
        logger.info(f"{self.entity_name} created", collection=self.store.collection, document_id=doc.id)
        return doc

    def _update(self, doc_id: str, mutate: Callable[[D], D]) -> D:
        """
        Apply `mutate` to the stored document under the store lock.

        `mutate` receives the current model and returns the new one; it may
        raise to abort the write. `id` and `createdAt` are preserved and
        `updatedAt` is refreshed.
        """
        with self.store.transaction() as documents:
            index = self._index_of(documents, doc_id)
            current = build_model(self.model, documents[index])
            updated = mutate(current)
            record = updated.to_record()
            record["id"] = current.id
            record["createdAt"] = current.created_at
            record["updatedAt"] = utc_now_iso()
            documents[index] = record
        return build_model(self.model, record)

    def _patch(self, doc_id: str, changes: Dict[str, Any]) -> D:
        """Merge camelCase or snake_case field changes into a document"""
        def apply(current: D) -> D:
            merged = current.to_record()
            merged.update({to_camel(k) if "_" in k else k: v for k, v in changes.items()})
            return build_model(self.model, merged)

        return self._update(doc_id, apply)

    def delete(self, doc_id: str) -> bool:
        """Remove a document. Returns False when it did not exist."""
        with self.store.transaction() as documents:
            remaining = [d for d in documents if not (isinstance(d, dict) and d.get("id") == doc_id)]
            if len(remaining) == len(documents):
                return False
            documents[:] = remaining
        logger.info(f"{self.entity_name} deleted", collection=self.store.collection, document_id=doc_id)
        return True

    def _index_of(self, documents: List[Dict[str, Any]], doc_id: str) -> int:
        for i, item in enumerate(documents):
            if isinstance(item, dict) and item.get("id") == doc_id:
                return i
        raise NotFoundError(f"{self.entity_name} not found")


def created_within(doc: Document, start_date: Optional[str] = None, end_date: Optional[str] = None) -> bool:
    """True if the document's createdAt falls inside the inclusive range"""
    try:
        start = parse_timestamp(start_date) if start_date else None
        end = parse_timestamp(end_date) if end_date else None
    except ValueError:
        raise ValidationError("Invalid date range")
    created = parse_timestamp(doc.created_at)
    if start is not None and created < start:
        return False
    if end is not None and created > end:
        return False
    return True
