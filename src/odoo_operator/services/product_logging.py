"""Log configuration files and the Vector log shipping side-car."""

import logging
from typing import Any, Dict, Optional

import kubernetes

from odoo_operator.constants import (
    CONFIG_VOLUME_NAME,
    LOG_CONFIG_FILENAME,
    LOG_VOLUME_NAME,
    MAX_LOG_FILES_SIZE_MIB,
    STACKABLE_LOG_DIR,
    VECTOR_CONFIG_FILENAME,
)
from odoo_operator.errors import ConfigFileError, ExternalCallError
from odoo_operator.models.config import ContainerLogConfig, Logging, Resources
from odoo_operator.services.app_config import template_env

logger = logging.getLogger(__name__)

VECTOR_AGGREGATOR_CM_ENTRY = "ADDRESS"
VECTOR_CONFIG_DIR = "/stackable/config"
LOG_FILE = "odoo.py.json"
VECTOR_SHUTDOWN_DIR = f"{STACKABLE_LOG_DIR}/_vector"


def resolve_vector_aggregator_address(
    manager, namespace: str, config_map_name: Optional[str]
) -> Optional[str]:
    """Address of the Vector aggregator from its discovery ConfigMap."""
    if not config_map_name:
        return None
    try:
        config_map = manager.get("v1", "ConfigMap", config_map_name, namespace)
    except ExternalCallError as e:
        raise ExternalCallError(
            "failed to retrieve the Vector aggregator discovery ConfigMap",
            config_map=f"{namespace}/{config_map_name}",
        ) from e
    address = (config_map.get("data") or {}).get(VECTOR_AGGREGATOR_CM_ENTRY)
    if address is None:
        raise ExternalCallError(
            f"Vector aggregator discovery ConfigMap has no {VECTOR_AGGREGATOR_CM_ENTRY!r} entry",
            config_map=f"{namespace}/{config_map_name}",
        )
    return address


def render_log_config(container_name: str, log_config: ContainerLogConfig) -> str:
    template = template_env().get_template("log_config.py.j2")
    loggers = {
        name: config.level.to_python_expression()
        for name, config in sorted(log_config.loggers.items())
        if name != "ROOT"
    }
    return template.render(
        log_dir=f"{STACKABLE_LOG_DIR}/{container_name}",
        log_file=LOG_FILE,
        max_bytes=MAX_LOG_FILES_SIZE_MIB * 1024 * 1024,
        console_level=log_config.console.level.to_python_expression(),
        file_level=log_config.file.level.to_python_expression(),
        root_level=log_config.root_level.to_python_expression(),
        loggers=loggers,
    )


def render_vector_config(vector_aggregator_address: str) -> str:
    template = template_env().get_template("vector.yaml.j2")
    return template.render(
        log_dir=STACKABLE_LOG_DIR,
        log_file=LOG_FILE,
        vector_aggregator_address=vector_aggregator_address,
    )


def extend_config_map_with_log_config(
    data: Dict[str, str],
    logging_config: Logging,
    main_container: Any,
    vector_aggregator_address: Optional[str],
    object_name: str,
) -> Dict[str, str]:
    """Add ``log_config.py`` and, if the agent is enabled, ``vector.yaml``."""
    result = dict(data)
    main_log_config = logging_config.containers.get(main_container)
    if main_log_config is not None and main_log_config.custom_config_map is None:
        result[LOG_CONFIG_FILENAME] = render_log_config(main_container.value, main_log_config)

    if logging_config.enableVectorAgent:
        if vector_aggregator_address is None:
            raise ConfigFileError(
                "the Vector agent is enabled but no aggregator ConfigMap is set",
                object=object_name,
            )
        result[VECTOR_CONFIG_FILENAME] = render_vector_config(vector_aggregator_address)
    return result


def log_volume_size_limit() -> str:
    # room for the current and one rotated file per logging container
    return f"{MAX_LOG_FILES_SIZE_MIB * 2 * 3}Mi"


def shutdown_vector_command() -> str:
    return f"mkdir -p {VECTOR_SHUTDOWN_DIR} && touch {VECTOR_SHUTDOWN_DIR}/shutdown"


def vector_container(
    image: str,
    image_pull_policy: str,
    resources: Resources,
    log_config: Optional[ContainerLogConfig] = None,
) -> kubernetes.client.V1Container:
    level = log_config.root_level.to_vector_literal() if log_config else "info"
    script = (
        f"vector --config {VECTOR_CONFIG_DIR}/{VECTOR_CONFIG_FILENAME} & vector_pid=$! && "
        f"if [ ! -f {VECTOR_SHUTDOWN_DIR}/shutdown ]; then "
        f"mkdir -p {VECTOR_SHUTDOWN_DIR} && "
        f"inotifywait -qq --event create {VECTOR_SHUTDOWN_DIR}; fi && "
        "sleep 1 && kill $vector_pid"
    )
    return kubernetes.client.V1Container(
        name="vector",
        image=image,
        image_pull_policy=image_pull_policy,
        command=["/bin/bash", "-x", "-euo", "pipefail", "-c"],
        args=[script],
        env=[kubernetes.client.V1EnvVar(name="VECTOR_LOG", value=level)],
        resources=kubernetes.client.V1ResourceRequirements(**resources.to_requirements()),
        volume_mounts=[
            kubernetes.client.V1VolumeMount(name=CONFIG_VOLUME_NAME, mount_path=VECTOR_CONFIG_DIR),
            kubernetes.client.V1VolumeMount(name=LOG_VOLUME_NAME, mount_path=STACKABLE_LOG_DIR),
        ],
    )
