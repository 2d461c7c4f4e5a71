# meshadapter

Building blocks for runtime adapters that sit between a model-mesh
controller and a model server. An adapter takes load, unload and status
requests, lays out the downloaded model files in the form the model
server expects, tells the server to load or unload them, and reports
capacity and readiness back.

Two model servers are covered:

- **MLServer** (`meshadapter.mlserver`): configuration, the model file
  layout (a `model-settings.json` written or rewritten for each model,
  with the model files symlinked next to it) and `MLServerAdapterServer`,
  which handles load, unload and status requests.
- **OpenVINO Model Server** (`meshadapter.ovms`): configuration, the
  versioned model file layout, and reading and writing of OVMS's
  multi-model config file and its config API responses.

## Configuration

Both adapters are configured from the environment with
`get_adapter_configuration_from_env()` in `meshadapter.mlserver.config`
or `meshadapter.ovms.config`. Each returns an `AdapterConfiguration`
dataclass.

| Variable                      | Default       | Meaning                                          |
|-------------------------------|---------------|--------------------------------------------------|
| `ADAPTER_PORT`                | `8085`        | Port the adapter is meant to listen on           |
| `RUNTIME_PORT`                | `8001`        | Port of the model server                         |
| `CONTAINER_MEM_REQ_BYTES`     | unset         | Memory of the container; must be set, >= 0       |
| `MEM_BUFFER_BYTES`            | 256 MiB       | Memory held back from model capacity             |
| `LOADING_CONCURRENCY`         | `1`           | Models loaded at once                            |
| `LOADTIME_TIMEOUT`            | `30000`       | Load timeout in milliseconds                     |
| `DEFAULT_MODELSIZE`           | `1000000`     | Size reported when a model's size is unknown     |
| `MODELSIZE_MULTIPLIER`        | `1.25`        | Factor from disk size to memory size; > 0        |
| `RUNTIME_VERSION`             | `v1`          | Version reported for the runtime                 |
| `LIMIT_PER_MODEL_CONCURRENCY` | `0`           | Requests per model; `0` means no limit           |
| `ROOT_MODEL_DIR`              | `/models`     | Where pulled models live                         |
| `USE_EMBEDDED_PULLER`         | `false`       | Whether models are pulled by the adapter itself  |

The adapted layouts are built under `ROOT_MODEL_DIR/_mlserver_models` or
`ROOT_MODEL_DIR/_ovms_models`. The capacity reported is
`CONTAINER_MEM_REQ_BYTES - MEM_BUFFER_BYTES`. A missing or negative
memory request, or a multiplier that is not positive, raises `ValueError`.

The OpenVINO configuration also reads:

| Variable              | Default                          | Meaning                                |
|-----------------------|----------------------------------|----------------------------------------|
| `MODEL_CONFIG_FILE`   | `/models/model_config_list.json` | OVMS multi-model config file           |
| `BATCH_WAIT_TIME_MIN` | `100ms`                          | Shortest batching wait                 |
| `BATCH_WAIT_TIME_MAX` | `3s`                             | Longest batching wait                  |
| `OVMS_RELOAD_TIMEOUT` | `30s`                            | Timeout of a config reload             |

Durations use the `300ms`, `1.5h`, `2h45m` notation and become
`datetime.timedelta` values (`meshadapter.envconfig.parse_duration`). A
variable that is set but cannot be parsed raises `EnvConfigError`.

```python
from meshadapter.mlserver.config import get_adapter_configuration_from_env

config = get_adapter_configuration_from_env()
```

## Shared helpers

`meshadapter.util` holds the path and endpoint helpers:

```python
from meshadapter.util import resolve_local_grpc_endpoint, secure_join

resolve_local_grpc_endpoint("port:8085")        # "localhost:8085"
resolve_local_grpc_endpoint("unix:/socket")     # "unix:/socket"
secure_join("a", "../../b", "c.txt")            # "a/b/c.txt", never escapes "a"
```

It also has `file_exists`, `clear_directory_contents` and
`remove_file_from_list`.

`meshadapter.runtime` defines the request and response dataclasses
(`LoadModelRequest`, `LoadModelResponse`, `UnloadModelRequest`,
`RuntimeStatusResponse` and the rest) and reads the JSON model key that
accompanies a load request: `get_model_type`, `get_schema_path` and
`calc_mem_capacity`. Errors that carry a status code are raised as
`StatusError` with a `Code`.

`meshadapter.modelschema` reads a model's `_schema.json` with
`load_schema`, giving a `ModelSchema` of `TensorMetadata` inputs and
outputs.

## MLServer

`meshadapter.mlserver.layout.adapt_model_layout_for_runtime` builds
`root_model_dir/model_id`. A model directory that already holds a
`model-settings.json` has its settings rewritten (the `name` becomes the
model id, a relative `parameters.uri` becomes absolute) and its other
entries symlinked. Any other file or directory is symlinked in and given
a generated settings file, with the `implementation` chosen for the
`sklearn`, `xgboost`, `lightgbm` and `mllib` model types. A schema path
injects `inputs` and `outputs`.

`MLServerAdapterServer` takes the configuration and two client objects
you supply:

- `client`, with `server_ready()` returning a bool and
  `server_metadata()` returning the server version;
- `model_repo_client`, with `repository_index(repository_name, ready)`
  returning model names, `repository_model_load(name)` and
  `repository_model_unload(name)`.

With `use_embedded_puller` set, a `puller` object with
`process_load_model_request(request)`, `cleanup_model(model_id)` and
`clear_local_model_storage(exclude_dir)` must also be given.

```python
from meshadapter.mlserver.server import MLServerAdapterServer
from meshadapter.runtime import LoadModelRequest

server = MLServerAdapterServer(config, client, model_repo_client)
status = server.runtime_status()
response = server.load_model(LoadModelRequest(
    model_id="my-model",
    model_type="sklearn",
    model_path="/models/my-model",
    model_key='{"disk_size_bytes": 54321}',
))
```

`runtime_status` reports `STARTING` until MLServer is ready; once ready
it unloads every model MLServer holds, clears the adapted model directory
and reports `READY` with the configured capacity and limits.

## OpenVINO Model Server

```python
from meshadapter.ovms.layout import adapt_model_layout_for_runtime

adapt_model_layout_for_runtime(
    "/models/_ovms_models", "my-model", "onnx", "/models/my-model/model.onnx", ""
)
# -> /models/_ovms_models/my-model/1/model.onnx, a symlink to the pulled file
```

A file becomes version `1` (an ONNX file is linked as `model.onnx`); a
directory whose subdirectories all have integer names contributes its
highest version (`largest_number_dir`); any other directory becomes
version `1`.

`meshadapter.ovms.modelconfig` reads and writes the documents OVMS uses:
`parse_repository_config` and `dump_repository_config` for the
`model_config_list` file, `parse_config_response` for the config status
API and `parse_error_response` for its error bodies.

## What is not included

- There is no command and no network server: nothing listens on
  `ADAPTER_PORT`. `MLServerAdapterServer` is called directly, and the
  clients that talk to MLServer and the model puller are supplied by the
  caller.
- For OpenVINO Model Server there is no request handler and nothing that
  talks to OVMS: the package builds the layout and the config documents,
  but does not write the config file on load or unload, ask OVMS to
  reload it, or batch requests. The batching and reload timeout settings
  are read but not used by anything in the package.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.