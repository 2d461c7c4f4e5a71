"""Model runtime request and response types, and model key interpretation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

__all__ = [
    "Code",
    "StatusError",
    "status_code",
    "LoadModelRequest",
    "LoadModelResponse",
    "UnloadModelRequest",
    "UnloadModelResponse",
    "RuntimeStatusRequest",
    "RuntimeStatus",
    "MethodInfo",
    "RuntimeStatusResponse",
    "get_model_type",
    "get_schema_path",
    "calc_mem_capacity",
]

logger = logging.getLogger(__name__)

MODEL_TYPE_KEY = "model_type"
SCHEMA_PATH_KEY = "schema_path"
DISK_SIZE_BYTES_KEY = "disk_size_bytes"


class Code(IntEnum):
    """gRPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @property
    def label(self) -> str:
        """The conventional mixed-case name, e.g. ``NotFound``."""
        if self is Code.OK:
            return "OK"
        if self is Code.CANCELLED:
            return "Canceled"
        return "".join(word.capitalize() for word in self.name.split("_"))


class StatusError(Exception):
    """An error carrying a gRPC status code."""

    def __init__(self, code: Code, message: str = "") -> None:
        super().__init__(message)
        self.code = Code(code)
        self.message = message

    def __str__(self) -> str:
        return f"rpc error: code = {self.code.label} desc = {self.message}"


def status_code(error: BaseException | None) -> Code:
    """The status code of ``error``: OK for none, UNKNOWN for plain exceptions."""
    if error is None:
        return Code.OK
    if isinstance(error, StatusError):
        return error.code
    return Code.UNKNOWN


@dataclass
class LoadModelRequest:
    model_id: str = ""
    model_path: str = ""
    model_type: str = ""
    model_key: str = ""


@dataclass
class LoadModelResponse:
    size_in_bytes: int = 0
    max_concurrency: int = 0


@dataclass
class UnloadModelRequest:
    model_id: str = ""


@dataclass
class UnloadModelResponse:
    pass


@dataclass
class RuntimeStatusRequest:
    pass


class RuntimeStatus(IntEnum):
    STARTING = 0
    READY = 1
    FAILING = 2


@dataclass
class MethodInfo:
    """Where in a request message the model id is injected."""

    id_injection_path: list[int] = field(default_factory=list)


@dataclass
class RuntimeStatusResponse:
    status: RuntimeStatus = RuntimeStatus.STARTING
    capacity_in_bytes: int = 0
    max_loading_concurrency: int = 0
    model_loading_timeout_ms: int = 0
    default_model_size_in_bytes: int = 0
    runtime_version: str = ""
    limit_model_concurrency: bool = False
    method_infos: dict[str, MethodInfo] = field(default_factory=dict)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _parse_model_key(text: str) -> dict[str, Any]:
    """Parse a model key as a JSON object; ``null`` gives an empty mapping."""
    value = json.loads(text, parse_constant=_reject_constant)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, found {type(value).__name__}")
    return value


def get_model_type(request: LoadModelRequest) -> str:
    """The model type named in the model key, else the request's model type.

    The key's ``model_type`` may be a string or an object with a ``name``.
    """
    try:
        model_key = _parse_model_key(request.model_key)
    except ValueError as err:
        logger.info(
            "The model type will fall back to LoadModelRequest.ModelType as "
            "LoadModelRequest.ModelKey value is not valid JSON: model_type=%r model_key=%r error=%s",
            request.model_type, request.model_key, err,
        )
        return request.model_type

    value = model_key.get(MODEL_TYPE_KEY)
    if value is None:
        logger.info(
            "The model type will fall back to LoadModelRequest.ModelType as "
            "LoadModelRequest.ModelKey does not have attribute %s: model_type=%r",
            MODEL_TYPE_KEY, request.model_type,
        )
        return request.model_type
    if isinstance(value, dict):
        name = value.get("name")
        if isinstance(name, str):
            return name
        logger.info(
            "The model type will fall back to LoadModelRequest.ModelType as "
            "LoadModelRequest.ModelKey attribute is not a string: %s=%r",
            MODEL_TYPE_KEY, value,
        )
        return request.model_type
    if isinstance(value, str):
        return value
    logger.info(
        "The model type will fall back to LoadModelRequest.ModelType as "
        "LoadModelRequest.ModelKey attribute is not a string or object: %s=%r",
        MODEL_TYPE_KEY, value,
    )
    return request.model_type


def get_schema_path(request: LoadModelRequest) -> str:
    """The schema path from the model key, or ``""`` if none is given.

    Raises ValueError if the key is not JSON or the path is not a string.
    """
    try:
        model_key = _parse_model_key(request.model_key)
    except ValueError as err:
        raise ValueError(
            f"Invalid modelKey in LoadModelRequest. ModelKey value '{request.model_key}' "
            f"is not valid JSON: {err}"
        ) from err
    value = model_key.get(SCHEMA_PATH_KEY)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(
            f"Invalid schemaPath in LoadModelRequest, '{SCHEMA_PATH_KEY}' attribute "
            f"must have a string value. Found value {value!r}"
        )
    return value


def calc_mem_capacity(model_key: str, default_size: int, multiplier: float) -> int:
    """Estimate a model's memory size from the disk size in its model key.

    Falls back to ``default_size`` when the key holds no usable disk size.
    """
    size = default_size
    try:
        parsed = _parse_model_key(model_key)
    except ValueError as err:
        logger.info(
            "'SizeInBytes' will be defaulted as LoadModelRequest.ModelKey value is not "
            "valid JSON: size=%d model_key=%r error=%s",
            size, model_key, err,
        )
        return size

    disk_size = parsed.get(DISK_SIZE_BYTES_KEY)
    if disk_size is None:
        logger.info(
            "'SizeInBytes' will be defaulted as LoadModelRequest.ModelKey did not contain "
            "a value for '%s': size=%d",
            DISK_SIZE_BYTES_KEY, size,
        )
        return size
    if isinstance(disk_size, bool) or not isinstance(disk_size, (int, float)):
        logger.info(
            "'SizeInBytes' will be defaulted as LoadModelRequest.ModelKey '%s' value is "
            "not a number: size=%d",
            DISK_SIZE_BYTES_KEY, size,
        )
        return size
    size = int(float(disk_size) * multiplier)
    logger.info(
        "Setting 'SizeInBytes' to a multiple of model disk size: size=%d disk_size=%s multiplier=%s",
        size, disk_size, multiplier,
    )
    return size