"""Arrange pulled model files into a repository layout MLServer can load."""

from __future__ import annotations

import json
import logging
import os
import shutil
from typing import Any

from meshadapter.modelschema import ModelSchema, ModelSchemaError, load_schema
from meshadapter.util import secure_join

__all__ = [
    "MLSERVER_REPOSITORY_CONFIG_FILENAME",
    "adapt_model_layout_for_runtime",
    "process_config_json",
    "generate_model_config_json",
    "process_schema",
]

logger = logging.getLogger(__name__)

MLSERVER_REPOSITORY_CONFIG_FILENAME = "model-settings.json"

_IMPLEMENTATIONS = {
    "lightgbm": "mlserver_lightgbm.LightGBMModel",
    "sklearn": "mlserver_sklearn.SKLearnModel",
    "xgboost": "mlserver_xgboost.XGBoostModel",
    "mllib": "mlserver-mllib.MLlibModel",
}

_ESCAPES = (
    ("&", "\\u0026"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _number(text: str) -> int | float:
    value = float(text)
    if value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def _parse_object(data: bytes) -> dict[str, Any]:
    value = json.loads(
        data, parse_constant=_reject_constant, parse_float=_number, parse_int=_number
    )
    if not isinstance(value, dict):
        raise ValueError("config is not a JSON object")
    return value


def _marshal(obj: Any) -> bytes:
    text = json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False)
    for char, escaped in _ESCAPES:
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def _write_file(path: str, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return os.path.basename(stripped)


def _load_schema_into(config: dict[str, Any], schema_path: str) -> None:
    try:
        schema = load_schema(schema_path)
    except ModelSchemaError as err:
        raise ValueError(f"Error parsing schema file: {err}") from err
    process_schema(config, schema)


def process_schema(config: dict[str, Any], schema: ModelSchema) -> None:
    """Set the config's ``inputs`` and ``outputs`` from those the schema has."""
    if schema.inputs is not None:
        config["inputs"] = [tensor.to_dict() for tensor in schema.inputs]
    if schema.outputs is not None:
        config["outputs"] = [tensor.to_dict() for tensor in schema.outputs]


def process_config_json(
    json_in: bytes | str, model_id: str, target_dir: str, schema_path: str
) -> bytes:
    """Rewrite a model settings file for the model id and target directory.

    The ``name`` becomes the model id and a relative ``parameters.uri`` is made
    absolute under ``target_dir``. Schema information is injected if a schema
    path is given. Unparsable input is passed through unchanged.
    """
    raw = json_in.encode("utf-8") if isinstance(json_in, str) else json_in
    try:
        config = _parse_object(raw)
    except ValueError as err:
        logger.info("Unable to unmarshal config file for model %s: %s", model_id, err)
        return raw

    config["name"] = model_id
    parameters = config.get("parameters")
    if parameters is not None:
        if not isinstance(parameters, dict):
            raise TypeError(f"'parameters' in config must be an object, found {parameters!r}")
        uri = parameters.get("uri")
        if uri is not None:
            if not isinstance(uri, str):
                raise TypeError(f"'parameters.uri' in config must be a string, found {uri!r}")
            try:
                new_uri = secure_join(target_dir, uri)
            except (OSError, ValueError) as err:
                logger.info("Error joining paths %s and %s: %s", target_dir, uri, err)
                return raw
            parameters["uri"] = new_uri
            logger.info("Rewrote model uri in settings file: %s -> %s", uri, new_uri)

    if schema_path:
        _load_schema_into(config, schema_path)
        logger.info("Injected schema information into settings file from %s", schema_path)

    return _marshal(config)


def generate_model_config_json(
    model_id: str, model_type: str, uri: str, schema_path: str
) -> bytes:
    """Create a model settings file for a model that came without one."""
    config: dict[str, Any] = {"name": model_id}
    implementation = _IMPLEMENTATIONS.get(model_type, "")
    if implementation:
        config["implementation"] = implementation
    config["parameters"] = {"uri": uri}

    if schema_path:
        _load_schema_into(config, schema_path)

    logger.info(
        "Generated model settings file: schema_path=%r implementation=%r",
        schema_path, implementation,
    )
    return _marshal(config)


def _adapt_native_model_layout(
    entries: list[os.DirEntry],
    model_id: str,
    model_path: str,
    schema_path: str,
    target_dir: str,
) -> None:
    for entry in entries:
        source = secure_join(model_path, entry.name)
        if entry.name == MLSERVER_REPOSITORY_CONFIG_FILENAME:
            try:
                with open(source, "rb") as handle:
                    config_json = handle.read()
            except OSError as err:
                raise OSError(f"Could not read model config file {source}: {err}") from err
            try:
                processed = process_config_json(config_json, model_id, target_dir, schema_path)
            except (ValueError, TypeError) as err:
                raise ValueError(f"Error processing config file {source}: {err}") from err
            target = secure_join(target_dir, MLSERVER_REPOSITORY_CONFIG_FILENAME)
            mode = entry.stat(follow_symlinks=False).st_mode & 0o777
            try:
                _write_file(target, processed, mode)
            except OSError as err:
                raise OSError(f"Error writing config file {source}: {err}") from err
            continue

        link = secure_join(target_dir, entry.name)
        try:
            os.symlink(source, link)
        except OSError as err:
            raise OSError(f"Error creating symlink to {source}: {err}") from err

    logger.info(
        "Adapted model directory with existing settings file: source=%s files=%d "
        "schema_path=%r target=%s",
        model_path, len(entries), schema_path, target_dir,
    )


def _adapt_model_layout(
    model_id: str,
    model_type: str,
    model_path: str,
    schema_path: str,
    target_dir: str,
    is_dir: bool,
) -> None:
    link_path = secure_join(target_dir, _base_name(model_path))
    try:
        os.symlink(model_path, link_path)
    except OSError as err:
        raise OSError(f"Error creating symlink: {err}") from err

    try:
        config_json = generate_model_config_json(model_id, model_type, link_path, schema_path)
    except ValueError as err:
        raise ValueError(f"Error generating config file for {model_id}: {err}") from err

    target = secure_join(target_dir, MLSERVER_REPOSITORY_CONFIG_FILENAME)
    try:
        _write_file(target, config_json, 0o664)
    except OSError as err:
        raise OSError(f"Error writing generated config file for {model_id}: {err}") from err

    logger.info(
        "Adapted model directory for standalone file/dir: source=%s is_dir=%s link=%s "
        "settings=%s",
        model_path, is_dir, link_path, target,
    )


def adapt_model_layout_for_runtime(
    root_model_dir: str,
    model_id: str,
    model_type: str,
    model_path: str,
    schema_path: str,
) -> None:
    """Build ``root_model_dir/model_id`` from the files at ``model_path``.

    A directory holding a settings file is passed through with its settings
    rewritten; anything else is linked in and given a generated settings file.
    """
    model_type = model_type.split(":")[0].lower()

    model_id_dir = secure_join(root_model_dir, model_id)

    try:
        if os.path.isdir(model_id_dir) and not os.path.islink(model_id_dir):
            shutil.rmtree(model_id_dir)
        elif os.path.lexists(model_id_dir):
            os.unlink(model_id_dir)
    except OSError as err:
        logger.info("Ignoring error trying to remove dir %s: %s", model_id_dir, err)
    try:
        os.makedirs(model_id_dir, mode=0o755, exist_ok=True)
    except OSError as err:
        raise OSError(f"Error creating directories for path {model_id_dir}: {err}") from err

    try:
        is_dir = os.path.isdir(model_path) if os.stat(model_path) else False
    except OSError as err:
        raise OSError(f"Error calling stat on {model_path}: {err}") from err

    try:
        if not is_dir:
            _adapt_model_layout(model_id, model_type, model_path, schema_path, model_id_dir, False)
        else:
            try:
                with os.scandir(model_path) as scan:
                    entries = sorted(scan, key=lambda entry: entry.name)
            except OSError as err:
                raise OSError(f"Could not read files in dir {model_path}: {err}") from err
            if any(entry.name == MLSERVER_REPOSITORY_CONFIG_FILENAME for entry in entries):
                _adapt_native_model_layout(
                    entries, model_id, model_path, schema_path, model_id_dir
                )
            else:
                _adapt_model_layout(
                    model_id, model_type, model_path, schema_path, model_id_dir, True
                )
    except OSError as err:
        raise OSError(f"Error adapting model directory {model_path}: {err}") from err
    except (ValueError, TypeError) as err:
        raise ValueError(f"Error adapting model directory {model_path}: {err}") from err