"""Arrange pulled model files into a repository layout the OpenVINO Model Server loads."""

from __future__ import annotations

import logging
import os
import re
import shutil
import stat
from collections.abc import Iterable
from typing import Any

from meshadapter.ovms.config import ONNX_MODEL_FILENAME
from meshadapter.util import secure_join

__all__ = ["adapt_model_layout_for_runtime", "largest_number_dir"]

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_DEFAULT_VERSION = "1"


def _is_dir(entry: Any) -> bool:
    if isinstance(entry, os.DirEntry):
        return entry.is_dir(follow_symlinks=False)
    return bool(entry.is_dir())


def largest_number_dir(entries: Iterable[Any]) -> str:
    """Name of the directory with the largest positive integer name.

    Entries need a ``name`` and an ``is_dir()``; files are ignored. If any
    directory name is not an integer, or none is positive, returns ``""``.
    """
    largest_int = 0
    largest_dir = ""
    for entry in entries:
        if not _is_dir(entry):
            continue
        name = entry.name
        if not _INT_RE.fullmatch(name):
            return ""
        value = int(name)
        if not _INT64_MIN <= value <= _INT64_MAX:
            return ""
        if value > largest_int:
            largest_int = value
            largest_dir = name
    return largest_dir


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return os.path.basename(stripped)


def _remove_all(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.unlink(path)


def _create_repository_from_path(
    model_path: str, version: str, model_type: str, model_id_dir: str
) -> None:
    """Link ``model_path`` in as ``model_id_dir/version`` (or a file inside it)."""
    try:
        info = os.stat(model_path)
    except OSError as err:
        raise OSError(f"Error calling stat on {model_path}: {err}") from err

    components = [model_id_dir, version]
    if not stat.S_ISDIR(info.st_mode):
        # an ONNX model file must carry the name the server looks for
        if model_type == "onnx":
            components.append(ONNX_MODEL_FILENAME)
        else:
            components.append(_base_name(model_path))

    try:
        link_path = secure_join(*components)
    except OSError as err:
        raise OSError(f"Error joining link path: {err}") from err

    try:
        os.makedirs(os.path.dirname(link_path), mode=0o755, exist_ok=True)
    except OSError as err:
        raise OSError(f"Error creating directories for path {link_path}: {err}") from err

    try:
        os.symlink(model_path, link_path)
    except OSError as err:
        raise OSError(f"Error creating symlink: {err}") from err


def _create_repository_from_directory(
    entries: list[os.DirEntry], model_path: str, model_type: str, model_id_dir: str
) -> None:
    """Link a model directory in, stepping into its highest version directory if any."""
    version = largest_number_dir(entries)
    if version:
        model_path = secure_join(model_path, version)
    else:
        version = _DEFAULT_VERSION
    _create_repository_from_path(model_path, version, model_type, model_id_dir)


def adapt_model_layout_for_runtime(
    root_model_dir: str,
    model_id: str,
    model_type: str,
    model_path: str,
    schema_path: str,
) -> None:
    """Build ``root_model_dir/model_id/<version>`` linking to the files at ``model_path``.

    A file becomes version 1; a directory whose subdirectories are all numbered
    contributes its highest version, any other directory becomes version 1.
    """
    model_type = model_type.split(":")[0].lower()

    model_id_dir = secure_join(root_model_dir, model_id)
    try:
        _remove_all(model_id_dir)
    except OSError as err:
        logger.info("Ignoring error trying to remove dir %s: %s", model_id_dir, err)
    try:
        os.makedirs(model_id_dir, mode=0o755, exist_ok=True)
    except OSError as err:
        raise OSError(f"Error creating directories for path {model_id_dir}: {err}") from err

    try:
        info = os.stat(model_path)
    except OSError as err:
        raise OSError(f"Error calling stat on model file: {err}") from err

    try:
        if not stat.S_ISDIR(info.st_mode):
            _create_repository_from_path(
                model_path, _DEFAULT_VERSION, model_type, model_id_dir
            )
        else:
            try:
                with os.scandir(model_path) as scan:
                    entries = sorted(scan, key=lambda entry: entry.name)
            except OSError as err:
                raise OSError(f"Could not read files in dir {model_path}: {err}") from err
            _create_repository_from_directory(entries, model_path, model_type, model_id_dir)
    except OSError as err:
        raise OSError(
            f"Error processing model/schema files for model {model_id}: {err}"
        ) from err

    logger.info(
        "Adapted model layout: model_id=%s model_type=%s source=%s schema_path=%r target=%s",
        model_id, model_type, model_path, schema_path, model_id_dir,
    )