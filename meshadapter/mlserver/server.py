"""Model runtime service that manages models held by an MLServer instance."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Any

from meshadapter.mlserver.config import MLSERVER_MODEL_SUBDIR, AdapterConfiguration
from meshadapter.mlserver.layout import adapt_model_layout_for_runtime
from meshadapter.runtime import (
    Code,
    LoadModelRequest,
    LoadModelResponse,
    MethodInfo,
    RuntimeStatus,
    RuntimeStatusRequest,
    RuntimeStatusResponse,
    StatusError,
    UnloadModelRequest,
    UnloadModelResponse,
    calc_mem_capacity,
    get_model_type,
    get_schema_path,
    status_code,
)
from meshadapter.util import clear_directory_contents, secure_join

__all__ = ["MLSERVER_SERVICE_NAME", "MLServerAdapterServer"]

logger = logging.getLogger(__name__)

MLSERVER_SERVICE_NAME = "inference.GRPCInferenceService"

_UINT32_MASK = (1 << 32) - 1
_UINT64_MASK = (1 << 64) - 1


def _remove_all(path: str) -> None:
    """Remove ``path`` and anything below it; a missing path is fine."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)
    except FileNotFoundError:
        pass


class MLServerAdapterServer:
    """Loads, unloads and reports on models in an MLServer runtime.

    ``client`` must offer ``server_ready() -> bool`` and
    ``server_metadata() -> str`` (the server version). ``model_repo_client``
    must offer ``repository_index(repository_name, ready)`` returning model
    names, ``repository_model_load(name)`` and ``repository_model_unload(name)``.
    Failures of these calls are reported by raising, ideally ``StatusError``.
    When the configuration enables the embedded puller, ``puller`` must offer
    ``process_load_model_request(request)``, ``cleanup_model(model_id)`` and
    ``clear_local_model_storage(exclude_dir)``.
    """

    def __init__(
        self,
        config: AdapterConfiguration,
        client: Any,
        model_repo_client: Any,
        puller: Any = None,
    ) -> None:
        if config.use_embedded_puller and puller is None:
            raise ValueError("The embedded puller is enabled but no puller was given")
        try:
            os.makedirs(config.root_model_dir, mode=0o755, exist_ok=True)
        except OSError as err:
            raise OSError(
                f"Error creating root MLServer model directory {config.root_model_dir}: {err}"
            ) from err
        logger.info("Created root MLServer model directory %s", config.root_model_dir)

        self.adapter_config = config
        self.client = client
        self.model_repo_client = model_repo_client
        self.puller = puller if config.use_embedded_puller else None
        logger.info("MLServer runtime adapter started")

    def load_model(self, request: LoadModelRequest) -> LoadModelResponse:
        """Lay out the model's files for MLServer and have it load them."""
        model_type = get_model_type(request)
        logger.info(
            "Model details: model_id=%s model_type=%s model_path=%s",
            request.model_id, model_type, request.model_path,
        )

        if self.puller is not None:
            try:
                request = self.puller.process_load_model_request(request)
            except Exception:
                logger.exception("Failed to pull model %s from storage", request.model_id)
                raise

        schema_path = get_schema_path(request)

        try:
            adapt_model_layout_for_runtime(
                self.adapter_config.root_model_dir,
                request.model_id,
                model_type,
                request.model_path,
                schema_path,
            )
        except (OSError, ValueError, TypeError) as err:
            logger.error("Failed to create model directory and load model: %s", err)
            raise StatusError(
                status_code(err), f"Failed to load Model due to adapter error: {err}"
            ) from err

        try:
            self.model_repo_client.repository_model_load(request.model_id)
        except Exception as err:
            logger.error("MLServer failed to load model %s: %s", request.model_id, err)
            raise StatusError(
                status_code(err),
                f"Failed to load Model due to MLServer runtime error: {err}",
            ) from err

        size = calc_mem_capacity(
            request.model_key,
            self.adapter_config.default_model_size_in_bytes,
            self.adapter_config.model_size_multiplier,
        )
        logger.info("MLServer model %s loaded: size_in_bytes=%d", request.model_id, size)
        return LoadModelResponse(
            size_in_bytes=size & _UINT64_MASK,
            max_concurrency=self.adapter_config.limit_model_concurrency & _UINT32_MASK,
        )

    def unload_model(self, request: UnloadModelRequest) -> UnloadModelResponse:
        """Unload the model from MLServer and delete its adapted files."""
        try:
            self.model_repo_client.repository_model_unload(request.model_id)
        except Exception as err:
            code = status_code(err)
            # MLServer reports a missing model as INVALID_ARGUMENT (or NOT_FOUND);
            # the local files are removed regardless.
            if isinstance(err, StatusError) and code in (Code.INVALID_ARGUMENT, Code.NOT_FOUND):
                logger.info("Unload request for model not found in MLServer: %s", err)
            else:
                logger.error("Failed to unload model %s from MLServer: %s", request.model_id, err)
                raise StatusError(code, "Failed to unload model from MLServer") from err

        model_id_dir = secure_join(self.adapter_config.root_model_dir, request.model_id)
        try:
            _remove_all(model_id_dir)
        except OSError as err:
            raise StatusError(
                status_code(err), f"Error while deleting the {model_id_dir} dir: {err}"
            ) from err

        if self.puller is not None:
            try:
                self.puller.cleanup_model(request.model_id)
            except Exception as err:
                raise StatusError(
                    status_code(err),
                    f"Failed to delete model files from puller cache: {err}",
                ) from err

        return UnloadModelResponse()

    def runtime_status(self, request: RuntimeStatusRequest | None = None) -> RuntimeStatusResponse:
        """Report readiness; on first readiness, reset MLServer and local files."""
        try:
            ready = self.client.server_ready()
        except Exception as err:
            logger.info("MLServer failed to get status or not ready: %s", err)
            return RuntimeStatusResponse(status=RuntimeStatus.STARTING)
        if not ready:
            logger.info("MLServer runtime not ready")
            return RuntimeStatusResponse(status=RuntimeStatus.STARTING)

        try:
            model_names = list(self.model_repo_client.repository_index("", True))
        except Exception as err:
            logger.info("MLServer runtime status, getting model info failed: %s", err)
            return RuntimeStatusResponse(status=RuntimeStatus.STARTING)

        for name in model_names:
            try:
                self.model_repo_client.repository_model_unload(name)
            except Exception as err:
                logger.info("MLServer runtime status, unload of model %s failed: %s", name, err)
                return RuntimeStatusResponse(status=RuntimeStatus.STARTING)

        try:
            clear_directory_contents(self.adapter_config.root_model_dir, None)
        except OSError as err:
            logger.error("Error cleaning up local model dir: %s", err)
            return RuntimeStatusResponse(status=RuntimeStatus.FAILING)

        if self.puller is not None:
            try:
                self.puller.clear_local_model_storage(MLSERVER_MODEL_SUBDIR)
            except Exception as err:
                logger.error("Error cleaning up local model dir: %s", err)
                return RuntimeStatusResponse(status=RuntimeStatus.FAILING)

        try:
            version = self.client.server_metadata()
        except Exception as err:
            logger.info("MLServer failed to get server metadata: %s", err)
            return RuntimeStatusResponse(status=RuntimeStatus.STARTING)
        if version:
            logger.info("Using runtime version returned by MLServer: %s", version)
            self.adapter_config.runtime_version = version

        config = self.adapter_config
        response = RuntimeStatusResponse(
            status=RuntimeStatus.READY,
            capacity_in_bytes=config.capacity_in_bytes & _UINT64_MASK,
            max_loading_concurrency=config.max_loading_concurrency & _UINT32_MASK,
            model_loading_timeout_ms=config.model_loading_timeout_ms & _UINT32_MASK,
            default_model_size_in_bytes=config.default_model_size_in_bytes & _UINT64_MASK,
            runtime_version=config.runtime_version,
            limit_model_concurrency=config.limit_model_concurrency > 0,
            method_infos={
                f"{MLSERVER_SERVICE_NAME}/ModelInfer": MethodInfo(id_injection_path=[1]),
                f"{MLSERVER_SERVICE_NAME}/ModelMetadata": MethodInfo(id_injection_path=[1]),
            },
        )
        logger.info("runtimeStatus: %s", response)
        return response