# app/api/v1/helpers.py
from typing import Type, TypeVar

from bson import ObjectId
from beanie import Document
from fastapi import HTTPException, status
from pydantic import BaseModel

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} format.")
    return ObjectId(value)


def to_response(doc: Document, schema: Type[ResponseT]) -> ResponseT:
    """Dump a Beanie document to JSON-safe data (ObjectIds as str) and validate it against ``schema``."""
    data = doc.model_dump(mode="json")
    data["id"] = str(doc.id)
    return schema.model_validate(data)
