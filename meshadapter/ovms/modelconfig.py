"""The OVMS multi-model configuration file and the config status API documents."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "OvmsModelConfig",
    "OvmsConfigListEntry",
    "OvmsModelStatus",
    "OvmsModelVersionStatus",
    "OvmsModelStatusResponse",
    "parse_repository_config",
    "dump_repository_config",
    "parse_config_response",
    "parse_error_response",
]

_ESCAPES = (
    ("&", "\\u0026"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _loads(text: str | bytes) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError as err:
        raise ValueError(f"invalid JSON: {err}") from err


def _object(data: Any, what: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a JSON object, found {data!r}")
    return data


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, found {value!r}")
    return value


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list, found {value!r}")
    return value


@dataclass
class OvmsModelConfig:
    """One model served by OVMS: its name and the directory holding its versions."""

    name: str = ""
    base_path: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> OvmsModelConfig:
        obj = _object(data, "config")
        return cls(name=_string(obj, "name"), base_path=_string(obj, "base_path"))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "base_path": self.base_path}


@dataclass
class OvmsConfigListEntry:
    """An entry of ``model_config_list``."""

    config: OvmsModelConfig = field(default_factory=OvmsModelConfig)

    @classmethod
    def from_dict(cls, data: Any) -> OvmsConfigListEntry:
        obj = _object(data, "model config list entry")
        return cls(config=OvmsModelConfig.from_dict(obj.get("config")))

    def to_dict(self) -> dict[str, Any]:
        return {"config": self.config.to_dict()}


@dataclass
class OvmsModelStatus:
    error_code: str = ""
    error_message: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> OvmsModelStatus:
        obj = _object(data, "status")
        return cls(
            error_code=_string(obj, "error_code"),
            error_message=_string(obj, "error_message"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.error_code, "error_message": self.error_message}


@dataclass
class OvmsModelVersionStatus:
    """State of one version of a model, e.g. ``AVAILABLE`` or ``LOADING``."""

    version: str = ""
    state: str = ""
    status: OvmsModelStatus = field(default_factory=OvmsModelStatus)

    @classmethod
    def from_dict(cls, data: Any) -> OvmsModelVersionStatus:
        obj = _object(data, "model version status")
        return cls(
            version=_string(obj, "version"),
            state=_string(obj, "state"),
            status=OvmsModelStatus.from_dict(obj.get("status")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "state": self.state, "status": self.status.to_dict()}


@dataclass
class OvmsModelStatusResponse:
    model_version_status: list[OvmsModelVersionStatus] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> OvmsModelStatusResponse:
        obj = _object(data, "model status")
        return cls(
            model_version_status=[
                OvmsModelVersionStatus.from_dict(item)
                for item in _list(obj, "model_version_status")
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        return {"model_version_status": [item.to_dict() for item in self.model_version_status]}


def parse_repository_config(text: str | bytes) -> list[OvmsConfigListEntry]:
    """Parse a multi-model config file into its list of entries."""
    obj = _object(_loads(text), "model repository config")
    return [OvmsConfigListEntry.from_dict(item) for item in _list(obj, "model_config_list")]


def dump_repository_config(entries: Iterable[OvmsConfigListEntry]) -> str:
    """Serialise entries as a compact multi-model config file."""
    document = {"model_config_list": [entry.to_dict() for entry in entries]}
    text = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _ESCAPES:
        text = text.replace(char, escaped)
    return text


def parse_config_response(text: str | bytes) -> dict[str, OvmsModelStatusResponse]:
    """Parse the config status API response: model name to version statuses."""
    obj = _object(_loads(text), "config response")
    return {name: OvmsModelStatusResponse.from_dict(value) for name, value in obj.items()}


def parse_error_response(text: str | bytes) -> str:
    """The ``error`` message of an error response from the config API."""
    obj = _object(_loads(text), "error response")
    return _string(obj, "error")