from datetime import timedelta

import pytest

from meshadapter.envconfig import EnvConfigError
from meshadapter.ovms import config as ovms
from meshadapter.ovms.config import get_adapter_configuration_from_env

_ENV_KEYS = (
    ovms.ADAPTER_PORT,
    ovms.RUNTIME_PORT,
    ovms.CONTAINER_MEM_REQ_BYTES,
    ovms.MEM_BUFFER_BYTES,
    ovms.LOADING_CONCURRENCY,
    ovms.LOADTIME_TIMEOUT,
    ovms.DEFAULT_MODELSIZE,
    ovms.MODELSIZE_MULTIPLIER,
    ovms.RUNTIME_VERSION,
    ovms.LIMIT_PER_MODEL_CONCURRENCY,
    ovms.ROOT_MODEL_DIR,
    ovms.USE_EMBEDDED_PULLER,
    ovms.MODEL_CONFIG_FILE,
    ovms.BATCH_WAIT_TIME_MIN,
    ovms.BATCH_WAIT_TIME_MAX,
    ovms.OVMS_RELOAD_TIMEOUT,
)

MEM_REQ = 6 * 1024 * 1024 * 1024


@pytest.fixture
def env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv(ovms.CONTAINER_MEM_REQ_BYTES, str(MEM_REQ))
    return monkeypatch


def test_defaults(env):
    config = get_adapter_configuration_from_env()
    assert config.port == ovms.DEFAULT_ADAPTER_PORT
    assert config.ovms_port == ovms.DEFAULT_RUNTIME_PORT
    assert config.ovms_mem_buffer_bytes == ovms.DEFAULT_MEM_BUFFER_BYTES
    assert config.model_config_file == "/models/model_config_list.json"
    assert config.root_model_dir == "/models/_ovms_models"
    assert config.batch_wait_time_min == ovms.DEFAULT_BATCH_WAIT_TIME_MIN
    assert config.batch_wait_time_max == ovms.DEFAULT_BATCH_WAIT_TIME_MAX
    assert config.reload_timeout == ovms.DEFAULT_RELOAD_TIMEOUT
    assert config.runtime_version == "v1"
    assert config.use_embedded_puller is False


def test_capacity_is_request_minus_buffer(env):
    env.setenv(ovms.MEM_BUFFER_BYTES, "1000")
    config = get_adapter_configuration_from_env()
    assert config.capacity_in_bytes == MEM_REQ - 1000
    assert config.capacity_in_bytes + config.ovms_mem_buffer_bytes == config.ovms_container_mem_req_bytes


def test_values_from_environment(env):
    env.setenv(ovms.ADAPTER_PORT, "9000")
    env.setenv(ovms.RUNTIME_PORT, "9001")
    env.setenv(ovms.MODEL_CONFIG_FILE, "/data/models.json")
    env.setenv(ovms.USE_EMBEDDED_PULLER, "true")
    env.setenv(ovms.MODELSIZE_MULTIPLIER, "2.5")
    config = get_adapter_configuration_from_env()
    assert config.port == 9000
    assert config.ovms_port == 9001
    assert config.model_config_file == "/data/models.json"
    assert config.use_embedded_puller is True
    assert config.model_size_multiplier == 2.5


def test_durations_from_environment(env):
    env.setenv(ovms.BATCH_WAIT_TIME_MIN, "250ms")
    env.setenv(ovms.BATCH_WAIT_TIME_MAX, "5s")
    env.setenv(ovms.OVMS_RELOAD_TIMEOUT, "1m")
    config = get_adapter_configuration_from_env()
    assert config.batch_wait_time_min == timedelta(milliseconds=250)
    assert config.batch_wait_time_max == timedelta(seconds=5)
    assert config.reload_timeout == timedelta(minutes=1)


def test_root_model_dir_is_joined_with_subdir(env):
    env.setenv(ovms.ROOT_MODEL_DIR, "/data")
    config = get_adapter_configuration_from_env()
    assert config.root_model_dir == "/data/" + ovms.OVMS_MODEL_SUBDIR


def test_missing_memory_request(env):
    env.delenv(ovms.CONTAINER_MEM_REQ_BYTES)
    with pytest.raises(ValueError, match=ovms.CONTAINER_MEM_REQ_BYTES):
        get_adapter_configuration_from_env()


def test_non_positive_multiplier(env):
    env.setenv(ovms.MODELSIZE_MULTIPLIER, "0")
    with pytest.raises(ValueError, match=ovms.MODELSIZE_MULTIPLIER):
        get_adapter_configuration_from_env()


def test_invalid_duration(env):
    env.setenv(ovms.OVMS_RELOAD_TIMEOUT, "soon")
    with pytest.raises(EnvConfigError) as info:
        get_adapter_configuration_from_env()
    assert info.value.key == ovms.OVMS_RELOAD_TIMEOUT


def test_invalid_int(env):
    env.setenv(ovms.ADAPTER_PORT, "eighty")
    with pytest.raises(EnvConfigError) as info:
        get_adapter_configuration_from_env()
    assert info.value.key == ovms.ADAPTER_PORT