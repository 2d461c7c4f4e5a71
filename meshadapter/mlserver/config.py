"""Configuration of the MLServer adapter, read from the environment."""

from __future__ import annotations

from dataclasses import dataclass

from meshadapter.envconfig import (
    get_env_bool,
    get_env_float,
    get_env_int,
    get_env_string,
)
from meshadapter.util import secure_join

__all__ = [
    "MLSERVER_MODEL_SUBDIR",
    "AdapterConfiguration",
    "get_adapter_configuration_from_env",
]

MLSERVER_MODEL_SUBDIR = "_mlserver_models"

ADAPTER_PORT = "ADAPTER_PORT"
DEFAULT_ADAPTER_PORT = 8085
RUNTIME_PORT = "RUNTIME_PORT"
DEFAULT_RUNTIME_PORT = 8001
CONTAINER_MEM_REQ_BYTES = "CONTAINER_MEM_REQ_BYTES"
DEFAULT_CONTAINER_MEM_REQ_BYTES = -1
MEM_BUFFER_BYTES = "MEM_BUFFER_BYTES"
DEFAULT_MEM_BUFFER_BYTES = 256 * 1024 * 1024  # 256MB
LOADING_CONCURRENCY = "LOADING_CONCURRENCY"
DEFAULT_LOADING_CONCURRENCY = 1
LOADTIME_TIMEOUT = "LOADTIME_TIMEOUT"
DEFAULT_LOADTIME_TIMEOUT_MS = 30000
DEFAULT_MODELSIZE = "DEFAULT_MODELSIZE"
DEFAULT_MODEL_SIZE_IN_BYTES = 1000000
MODELSIZE_MULTIPLIER = "MODELSIZE_MULTIPLIER"
DEFAULT_MODEL_SIZE_MULTIPLIER = 1.25
RUNTIME_VERSION = "RUNTIME_VERSION"
DEFAULT_RUNTIME_VERSION = "v1"
LIMIT_PER_MODEL_CONCURRENCY = "LIMIT_PER_MODEL_CONCURRENCY"
DEFAULT_LIMIT_PER_MODEL_CONCURRENCY = 0  # 0 means no limit
ROOT_MODEL_DIR = "ROOT_MODEL_DIR"
DEFAULT_ROOT_MODEL_DIR = "/models"
USE_EMBEDDED_PULLER = "USE_EMBEDDED_PULLER"
DEFAULT_USE_EMBEDDED_PULLER = False


@dataclass
class AdapterConfiguration:
    """Settings of one MLServer adapter process."""

    port: int = DEFAULT_ADAPTER_PORT
    mlserver_port: int = DEFAULT_RUNTIME_PORT
    mlserver_container_mem_req_bytes: int = DEFAULT_CONTAINER_MEM_REQ_BYTES
    mlserver_mem_buffer_bytes: int = DEFAULT_MEM_BUFFER_BYTES
    capacity_in_bytes: int = 0
    max_loading_concurrency: int = DEFAULT_LOADING_CONCURRENCY
    model_loading_timeout_ms: int = DEFAULT_LOADTIME_TIMEOUT_MS
    default_model_size_in_bytes: int = DEFAULT_MODEL_SIZE_IN_BYTES
    model_size_multiplier: float = DEFAULT_MODEL_SIZE_MULTIPLIER
    runtime_version: str = DEFAULT_RUNTIME_VERSION
    limit_model_concurrency: int = DEFAULT_LIMIT_PER_MODEL_CONCURRENCY
    root_model_dir: str = ""
    use_embedded_puller: bool = DEFAULT_USE_EMBEDDED_PULLER


def get_adapter_configuration_from_env() -> AdapterConfiguration:
    """Build the configuration from environment variables.

    Raises ValueError if the container memory request is missing or negative,
    or the model size multiplier is not positive.
    """
    mem_req = get_env_int(CONTAINER_MEM_REQ_BYTES, DEFAULT_CONTAINER_MEM_REQ_BYTES)
    mem_buffer = get_env_int(MEM_BUFFER_BYTES, DEFAULT_MEM_BUFFER_BYTES)
    config = AdapterConfiguration(
        port=get_env_int(ADAPTER_PORT, DEFAULT_ADAPTER_PORT),
        mlserver_port=get_env_int(RUNTIME_PORT, DEFAULT_RUNTIME_PORT),
        mlserver_container_mem_req_bytes=mem_req,
        mlserver_mem_buffer_bytes=mem_buffer,
        capacity_in_bytes=mem_req - mem_buffer,
        max_loading_concurrency=get_env_int(LOADING_CONCURRENCY, DEFAULT_LOADING_CONCURRENCY),
        model_loading_timeout_ms=get_env_int(LOADTIME_TIMEOUT, DEFAULT_LOADTIME_TIMEOUT_MS),
        default_model_size_in_bytes=get_env_int(DEFAULT_MODELSIZE, DEFAULT_MODEL_SIZE_IN_BYTES),
        model_size_multiplier=get_env_float(MODELSIZE_MULTIPLIER, DEFAULT_MODEL_SIZE_MULTIPLIER),
        runtime_version=get_env_string(RUNTIME_VERSION, DEFAULT_RUNTIME_VERSION),
        limit_model_concurrency=get_env_int(
            LIMIT_PER_MODEL_CONCURRENCY, DEFAULT_LIMIT_PER_MODEL_CONCURRENCY
        ),
        use_embedded_puller=get_env_bool(USE_EMBEDDED_PULLER, DEFAULT_USE_EMBEDDED_PULLER),
    )

    try:
        config.root_model_dir = secure_join(
            get_env_string(ROOT_MODEL_DIR, DEFAULT_ROOT_MODEL_DIR), MLSERVER_MODEL_SUBDIR
        )
    except (OSError, ValueError) as err:
        raise ValueError(f"Could not construct root model path: {err}") from err

    if config.mlserver_container_mem_req_bytes < 0:
        raise ValueError(
            f"{CONTAINER_MEM_REQ_BYTES} environment variable must be set to a positive "
            f"integer, found value {config.mlserver_container_mem_req_bytes}"
        )
    if config.model_size_multiplier <= 0:
        raise ValueError(
            f"{MODELSIZE_MULTIPLIER} environment variable must be greater than 0, "
            f"found value {format(config.model_size_multiplier, 'g')}"
        )
    return config