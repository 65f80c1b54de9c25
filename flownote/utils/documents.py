from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from flownote.utils.exceptions import DocumentDecodeError


M = TypeVar("M", bound=BaseModel)


def decode_document(model: Type[M], collection: str, doc: Optional[Dict[str, Any]]) -> Optional[M]:
    """Validate a raw MongoDB document into ``model``.

    ``_id`` is exposed as ``id``. A document that does not fit the model raises
    DocumentDecodeError instead of leaking a half-shaped object to callers.
    """
    if doc is None:
        return None
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DocumentDecodeError(collection, data.get("id"), str(exc)) from exc


def decode_many(model: Type[M], collection: str, docs: Iterable[Dict[str, Any]]) -> List[M]:
    return [decode_document(model, collection, d) for d in docs]
