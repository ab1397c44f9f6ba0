"""
Result Codecs

The coordinator stores operation results as opaque strings. A codec declares
how a given operation's result is encoded for storage and decoded on replay.
"""

import json
from typing import Any, Generic, Protocol, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class ResultCodec(Protocol[T]):
    """Encodes a result for storage and decodes it for replay."""

    def encode(self, value: T) -> str:
        ...

    def decode(self, data: str) -> T:
        ...


class JsonCodec:
    """Codec for plain JSON-compatible values (dicts, lists, scalars)."""

    def encode(self, value: Any) -> str:
        return json.dumps(value, sort_keys=True, default=str)

    def decode(self, data: str) -> Any:
        return json.loads(data)


class PydanticCodec(Generic[M]):
    """Codec bound to a Pydantic response model."""

    def __init__(self, model: Type[M]):
        self.model = model

    def encode(self, value: M) -> str:
        return value.model_dump_json()

    def decode(self, data: str) -> M:
        return self.model.model_validate_json(data)


json_codec = JsonCodec()
