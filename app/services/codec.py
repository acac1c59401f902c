"""
Decoding of records read from the key-value store.

Values may come back as plain JSON text, as JSON text wrapped in a second
JSON string (older writers stringified before the client serialized again),
or already structured. decode_record() normalizes all of these into a single
tagged result so call sites never branch on the raw type.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class Decoded:
    """Either a decoded value or the reason it could not be decoded."""

    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "Decoded":
        return cls(value=value)

    @classmethod
    def corrupt(cls, reason: str) -> "Decoded":
        return cls(error=reason)


def decode_record(raw: Any) -> Decoded:
    """
    Decode a raw store value into a dict or list.

    Args:
        raw: Value as returned by the store (str, dict, list, ...)

    Returns:
        Decoded.success(dict | list) or Decoded.corrupt(reason)
    """
    value = raw
    # At most two layers of JSON text: plain and double-encoded
    for _ in range(2):
        if not isinstance(value, str):
            break
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            return Decoded.corrupt(f"invalid JSON: {e.msg}")

    if isinstance(value, (dict, list)):
        return Decoded.success(value)
    return Decoded.corrupt(f"expected an object or array, got {type(value).__name__}")


def decode_model(raw: Any, model: Type[ModelT]) -> Decoded:
    """Decode a raw store value and validate it as `model`."""
    decoded = decode_record(raw)
    if not decoded.ok:
        return decoded
    if not isinstance(decoded.value, dict):
        return Decoded.corrupt(f"expected an object for {model.__name__}")
    try:
        return Decoded.success(model.model_validate(decoded.value))
    except ValidationError as e:
        return Decoded.corrupt(f"invalid {model.__name__}: {e.error_count()} error(s)")


def encode_record(value: Any) -> str:
    """Serialize a model (camelCase) or plain JSON value for storage."""
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, exclude_none=True, mode="json")
    elif isinstance(value, list):
        value = [
            item.model_dump(by_alias=True, exclude_none=True, mode="json")
            if isinstance(item, BaseModel) else item
            for item in value
        ]
    elif isinstance(value, dict):
        value = {
            key: item.model_dump(by_alias=True, exclude_none=True, mode="json")
            if isinstance(item, BaseModel) else item
            for key, item in value.items()
        }
    return json.dumps(value, separators=(",", ":"))
