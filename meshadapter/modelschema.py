"""Model input/output schema, a subset of the KServe v2 model metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

__all__ = [
    "MODEL_SCHEMA_FILE",
    "Datatype",
    "TensorMetadata",
    "ModelSchema",
    "ModelSchemaError",
    "load_schema",
]

MODEL_SCHEMA_FILE = "_schema.json"


class ModelSchemaError(Exception):
    """A schema file could not be read or understood."""


class Datatype(str, Enum):
    """Tensor datatypes; STRING is an extension to the KServe v2 set."""

    BYTES = "BYTES"
    BOOL = "BOOL"
    UINT8 = "UINT8"
    UINT16 = "UINT16"
    UINT32 = "UINT32"
    UINT64 = "UINT64"
    INT8 = "INT8"
    INT16 = "INT16"
    INT32 = "INT32"
    INT64 = "INT64"
    FP16 = "FP16"
    FP32 = "FP32"
    FP64 = "FP64"
    STRING = "STRING"


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ModelSchemaError(f"field {key!r} must be a string, found {value!r}")
    return value


@dataclass
class TensorMetadata:
    """Name, datatype and shape of one tensor."""

    name: str = ""
    datatype: str = ""
    shape: list[int] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> TensorMetadata:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ModelSchemaError(f"tensor metadata must be an object, found {data!r}")
        shape = data.get("shape")
        if shape is not None:
            if not isinstance(shape, list) or not all(
                isinstance(dim, int) and not isinstance(dim, bool) for dim in shape
            ):
                raise ModelSchemaError(f"shape must be a list of integers, found {shape!r}")
            shape = list(shape)
        return cls(
            name=_string_field(data, "name"),
            datatype=_string_field(data, "datatype"),
            shape=shape,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "datatype": self.datatype,
            "shape": None if self.shape is None else list(self.shape),
        }


def _tensor_list(data: dict[str, Any], key: str) -> list[TensorMetadata] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ModelSchemaError(f"field {key!r} must be a list, found {value!r}")
    return [TensorMetadata.from_dict(item) for item in value]


@dataclass
class ModelSchema:
    """The inputs and outputs of a model; either may be absent."""

    inputs: list[TensorMetadata] | None = None
    outputs: list[TensorMetadata] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ModelSchema:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ModelSchemaError(f"model schema must be an object, found {data!r}")
        return cls(inputs=_tensor_list(data, "inputs"), outputs=_tensor_list(data, "outputs"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.inputs:
            result["inputs"] = [tensor.to_dict() for tensor in self.inputs]
        if self.outputs:
            result["outputs"] = [tensor.to_dict() for tensor in self.outputs]
        return result


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def load_schema(schema_filename: str) -> ModelSchema:
    """Read and parse a schema JSON file."""
    try:
        with open(schema_filename, "rb") as handle:
            raw = handle.read()
    except OSError as err:
        raise ModelSchemaError(
            f"Unable to read model schema file {schema_filename}: {err}"
        ) from err
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as err:
        raise ModelSchemaError(f"Unable to parse model schema JSON: {err}") from err
    try:
        return ModelSchema.from_dict(data)
    except ModelSchemaError as err:
        raise ModelSchemaError(f"Unable to parse model schema JSON: {err}") from err