"""Manifests for the database bootstrap job."""

from typing import Any, Dict, Optional

import kubernetes

from odoo_operator.constants import (
    CONFIG_VOLUME_NAME,
    DB_CONTROLLER_NAME,
    LOG_CONFIG_DIR,
    LOG_CONFIG_VOLUME_NAME,
    LOG_VOLUME_NAME,
    STACKABLE_LOG_DIR,
)
from odoo_operator.models.config import Resources, resources
from odoo_operator.models.database import (
    DB_INITIALIZER_ROLE,
    DB_INITIALIZER_ROLE_GROUP,
    DbContainer,
    OdooDB,
    OdooDbConfig,
)
from odoo_operator.models.fragments import validate_fragment
from odoo_operator.models.image import ResolvedProductImage
from odoo_operator.services.cluster_builder import MAPPED_SECRET_ENVS, env_var_from_secret
from odoo_operator.services.metadata import build_recommended_labels, object_meta, to_manifest
from odoo_operator.services.product_logging import (
    extend_config_map_with_log_config,
    log_volume_size_limit,
    shutdown_vector_command,
    vector_container,
)

client = kubernetes.client

INIT_JOB_RESOURCES = validate_fragment(resources("100m", "400m", "512Mi"), Resources)
VECTOR_RESOURCES = validate_fragment(resources("250m", "500m", "128Mi"), Resources)

ADMIN_USER_ENVS = (
    ("ADMIN_USERNAME", "adminUser.username"),
    ("ADMIN_FIRSTNAME", "adminUser.firstname"),
    ("ADMIN_LASTNAME", "adminUser.lastname"),
    ("ADMIN_EMAIL", "adminUser.email"),
    ("ADMIN_PASSWORD", "adminUser.password"),
)


def config_map_name(odoo_db: OdooDB) -> str:
    return f"{odoo_db.name}-init-db"


def _labels(odoo_db: OdooDB, image: ResolvedProductImage) -> Dict[str, str]:
    return build_recommended_labels(
        odoo_db.name,
        DB_CONTROLLER_NAME,
        image.app_version_label,
        DB_INITIALIZER_ROLE,
        DB_INITIALIZER_ROLE_GROUP,
    )


def init_commands(config: OdooDbConfig) -> str:
    """Schema creation and upgrade, then the admin user."""
    commands = [
        "odoo db init",
        "odoo db upgrade",
        'odoo users create --username "$ADMIN_USERNAME" --firstname "$ADMIN_FIRSTNAME" '
        '--lastname "$ADMIN_LASTNAME" --email "$ADMIN_EMAIL" --password "$ADMIN_PASSWORD" '
        '--role "Admin"',
    ]
    if config.logging.enableVectorAgent:
        commands.append(shutdown_vector_command())
    return "; ".join(commands)


def build_init_db_config_map(
    odoo_db: OdooDB,
    image: ResolvedProductImage,
    config: OdooDbConfig,
    vector_aggregator_address: Optional[str],
) -> Dict[str, Any]:
    data = extend_config_map_with_log_config(
        {},
        config.logging,
        DbContainer.ODOO_INIT_DB,
        vector_aggregator_address,
        str(odoo_db),
    )
    config_map = client.V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=object_meta(
            config_map_name(odoo_db),
            odoo_db.namespace,
            _labels(odoo_db, image),
            odoo_db.owner_reference(),
        ),
        data=data,
    )
    return to_manifest(config_map)


def build_init_job(
    odoo_db: OdooDB,
    image: ResolvedProductImage,
    service_account_name: str,
    config: OdooDbConfig,
) -> Dict[str, Any]:
    secret = odoo_db.spec.credentialsSecret
    env = [env_var_from_secret(name, secret, key) for name, key in MAPPED_SECRET_ENVS]
    env.extend(env_var_from_secret(name, secret, key) for name, key in ADMIN_USER_ENVS)
    env.append(client.V1EnvVar(name="PYTHONPATH", value=LOG_CONFIG_DIR))
    env.append(
        client.V1EnvVar(
            name="ODOO__LOGGING__LOGGING_CONFIG_CLASS", value="log_config.LOGGING_CONFIG"
        )
    )

    containers = [
        client.V1Container(
            name=DbContainer.ODOO_INIT_DB.value,
            image=image.image,
            image_pull_policy=image.image_pull_policy,
            command=["/bin/bash", "-c"],
            args=[init_commands(config)],
            env=env,
            resources=client.V1ResourceRequirements(**INIT_JOB_RESOURCES.to_requirements()),
            volume_mounts=[
                client.V1VolumeMount(name=LOG_CONFIG_VOLUME_NAME, mount_path=LOG_CONFIG_DIR),
                client.V1VolumeMount(name=LOG_VOLUME_NAME, mount_path=STACKABLE_LOG_DIR),
            ],
        )
    ]
    if config.logging.enableVectorAgent:
        containers.append(
            vector_container(
                image.image,
                image.image_pull_policy,
                VECTOR_RESOURCES,
                config.logging.containers.get(DbContainer.VECTOR),
            )
        )

    init_log = config.logging.containers.get(DbContainer.ODOO_INIT_DB)
    log_config_map = (init_log.custom_config_map if init_log else None) or config_map_name(odoo_db)

    labels = _labels(odoo_db, image)
    job = client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=object_meta(
            odoo_db.job_name(), odoo_db.namespace, labels, odoo_db.owner_reference()
        ),
        spec=client.V1JobSpec(
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(name=f"{odoo_db.name}-init", labels=labels),
                spec=client.V1PodSpec(
                    containers=containers,
                    restart_policy="Never",
                    service_account_name=service_account_name,
                    image_pull_secrets=[
                        client.V1LocalObjectReference(name=s["name"])
                        for s in image.pull_secrets
                    ] or None,
                    volumes=[
                        client.V1Volume(
                            name=CONFIG_VOLUME_NAME,
                            config_map=client.V1ConfigMapVolumeSource(name=config_map_name(odoo_db)),
                        ),
                        client.V1Volume(
                            name=LOG_CONFIG_VOLUME_NAME,
                            config_map=client.V1ConfigMapVolumeSource(name=log_config_map),
                        ),
                        client.V1Volume(
                            name=LOG_VOLUME_NAME,
                            empty_dir=client.V1EmptyDirVolumeSource(
                                size_limit=log_volume_size_limit()
                            ),
                        ),
                    ],
                ),
            )
        ),
    )
    return to_manifest(job)
