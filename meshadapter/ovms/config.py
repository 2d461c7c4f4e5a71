"""Configuration of the OpenVINO Model Server adapter, read from the environment."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from meshadapter.envconfig import (
    get_env_bool,
    get_env_duration,
    get_env_float,
    get_env_int,
    get_env_string,
)
from meshadapter.util import secure_join

__all__ = [
    "TFS_GRPC_SERVICE_NAME",
    "KSERVE_V2_GRPC_SERVICE_NAME",
    "OVMS_MODEL_SUBDIR",
    "ONNX_MODEL_FILENAME",
    "AdapterConfiguration",
    "get_adapter_configuration_from_env",
]

TFS_GRPC_SERVICE_NAME = "tensorflow.serving.PredictionService"
KSERVE_V2_GRPC_SERVICE_NAME = "inference.GRPCInferenceService"
OVMS_MODEL_SUBDIR = "_ovms_models"
ONNX_MODEL_FILENAME = "model.onnx"

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

MODEL_CONFIG_FILE = "MODEL_CONFIG_FILE"
DEFAULT_MODEL_CONFIG_FILE = "/models/model_config_list.json"
BATCH_WAIT_TIME_MIN = "BATCH_WAIT_TIME_MIN"
DEFAULT_BATCH_WAIT_TIME_MIN = timedelta(milliseconds=100)
BATCH_WAIT_TIME_MAX = "BATCH_WAIT_TIME_MAX"
DEFAULT_BATCH_WAIT_TIME_MAX = timedelta(seconds=3)
OVMS_RELOAD_TIMEOUT = "OVMS_RELOAD_TIMEOUT"
DEFAULT_RELOAD_TIMEOUT = timedelta(seconds=30)


@dataclass
class AdapterConfiguration:
    """Settings of one OpenVINO Model Server adapter process."""

    port: int = DEFAULT_ADAPTER_PORT
    ovms_port: int = DEFAULT_RUNTIME_PORT
    ovms_container_mem_req_bytes: int = DEFAULT_CONTAINER_MEM_REQ_BYTES
    ovms_mem_buffer_bytes: int = DEFAULT_MEM_BUFFER_BYTES
    capacity_in_bytes: int = 0
    max_loading_concurrency: int = DEFAULT_LOADING_CONCURRENCY
    model_loading_timeout_ms: int = DEFAULT_LOADTIME_TIMEOUT_MS
    default_model_size_in_bytes: int = DEFAULT_MODEL_SIZE_IN_BYTES
    model_size_multiplier: float = DEFAULT_MODEL_SIZE_MULTIPLIER
    runtime_version: str = DEFAULT_RUNTIME_VERSION
    limit_model_concurrency: int = DEFAULT_LIMIT_PER_MODEL_CONCURRENCY
    root_model_dir: str = ""
    use_embedded_puller: bool = DEFAULT_USE_EMBEDDED_PULLER

    model_config_file: str = DEFAULT_MODEL_CONFIG_FILE
    batch_wait_time_min: timedelta = field(default=DEFAULT_BATCH_WAIT_TIME_MIN)
    batch_wait_time_max: timedelta = field(default=DEFAULT_BATCH_WAIT_TIME_MAX)
    reload_timeout: timedelta = field(default=DEFAULT_RELOAD_TIMEOUT)


def get_adapter_configuration_from_env() -> AdapterConfiguration:
    """Build the configuration from environment variables.

    Raises ValueError if the container memory request is missing or negative,
    or the model size multiplier is not positive.
    """
    mem_req = get_env_int(CONTAINER_MEM_REQ_BYTES, DEFAULT_CONTAINER_MEM_REQ_BYTES)
    mem_buffer = get_env_int(MEM_BUFFER_BYTES, DEFAULT_MEM_BUFFER_BYTES)
    config = AdapterConfiguration(
        port=get_env_int(ADAPTER_PORT, DEFAULT_ADAPTER_PORT),
        ovms_port=get_env_int(RUNTIME_PORT, DEFAULT_RUNTIME_PORT),
        ovms_container_mem_req_bytes=mem_req,
        ovms_mem_buffer_bytes=mem_buffer,
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
            get_env_string(ROOT_MODEL_DIR, DEFAULT_ROOT_MODEL_DIR), OVMS_MODEL_SUBDIR
        )
    except (OSError, ValueError) as err:
        raise ValueError(f"Could not construct model store path: {err}") from err

    config.model_config_file = get_env_string(MODEL_CONFIG_FILE, DEFAULT_MODEL_CONFIG_FILE)
    config.batch_wait_time_min = get_env_duration(BATCH_WAIT_TIME_MIN, DEFAULT_BATCH_WAIT_TIME_MIN)
    config.batch_wait_time_max = get_env_duration(BATCH_WAIT_TIME_MAX, DEFAULT_BATCH_WAIT_TIME_MAX)
    config.reload_timeout = get_env_duration(OVMS_RELOAD_TIMEOUT, DEFAULT_RELOAD_TIMEOUT)

    if config.ovms_container_mem_req_bytes < 0:
        raise ValueError(
            f"{CONTAINER_MEM_REQ_BYTES} environment variable must be set to a positive "
            f"integer, found value {config.ovms_container_mem_req_bytes}"
        )
    if config.model_size_multiplier <= 0:
        raise ValueError(
            f"{MODELSIZE_MULTIPLIER} environment variable must be greater than 0, "
            f"found value {format(config.model_size_multiplier, 'g')}"
        )
    return config