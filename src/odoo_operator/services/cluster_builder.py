"""Manifests for the roles and role groups of an OdooCluster."""

from typing import Any, Dict, List, Optional

import kubernetes

from odoo_operator.constants import (
    CLUSTER_CONTROLLER_NAME,
    CONFIG_PATH,
    CONFIG_VOLUME_NAME,
    GIT_CONTENT,
    GIT_LINK,
    GIT_ROOT,
    GIT_SYNC_DIR,
    GIT_SYNC_NAME,
    HTTP_PORT_NAME,
    LOG_CONFIG_DIR,
    LOG_CONFIG_VOLUME_NAME,
    LOG_VOLUME_NAME,
    METRICS_PORT,
    METRICS_PORT_NAME,
    ODOO_CONFIG_FILENAME,
    ODOO_UID,
    SERVICE_PORT_NAME,
    STACKABLE_LOG_DIR,
)
from odoo_operator.models.cluster import GitSync, OdooCluster, RoleGroupRef
from odoo_operator.models.config import Container, OdooConfig, Resources, resources
from odoo_operator.models.fragments import validate_fragment
from odoo_operator.models.image import ResolvedProductImage
from odoo_operator.models.roles import OdooRole
from odoo_operator.services.app_config import add_odoo_config, write_config_file
from odoo_operator.services.authentication import LdapProvider
from odoo_operator.services.metadata import (
    build_recommended_labels,
    deep_merge,
    object_meta,
    role_group_selector_labels,
    role_selector_labels,
    to_manifest,
)
from odoo_operator.services.product_config import RoleGroupConfig
from odoo_operator.services.product_logging import (
    extend_config_map_with_log_config,
    log_volume_size_limit,
    vector_container,
)

client = kubernetes.client

SIDECAR_RESOURCES = validate_fragment(resources("100m", "200m", "64Mi"), Resources)
VECTOR_RESOURCES = validate_fragment(resources("250m", "500m", "128Mi"), Resources)

# Secret keys mapped to environment variables of every main container
MAPPED_SECRET_ENVS = (
    ("ODOO__WEBSERVER__SECRET_KEY", "connections.secretKey"),
    ("ODOO__CORE__SQL_ALCHEMY_CONN", "connections.sqlalchemyDatabaseUri"),
    ("ODOO__CELERY__RESULT_BACKEND", "connections.celeryResultBackend"),
    ("ODOO__CELERY__BROKER_URL", "connections.celeryBrokerUrl"),
)


def _labels(cluster: OdooCluster, image: ResolvedProductImage, role: str, role_group: str):
    return build_recommended_labels(
        cluster.name, CLUSTER_CONTROLLER_NAME, image.app_version_label, role, role_group
    )


def env_var_from_secret(name: str, secret: str, key: str) -> client.V1EnvVar:
    return client.V1EnvVar(
        name=name,
        value_from=client.V1EnvVarSource(
            secret_key_ref=client.V1SecretKeySelector(name=secret, key=key)
        ),
    )


def build_role_service(
    cluster: OdooCluster, image: ResolvedProductImage, role: OdooRole, port: int
) -> Dict[str, Any]:
    """Cluster-facing Service of a role, typed by the listener class."""
    service = client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=object_meta(
            f"{cluster.name}-{role.value}",
            cluster.namespace,
            _labels(cluster, image, role.value, "global"),
            cluster.owner_reference(),
        ),
        spec=client.V1ServiceSpec(
            type=cluster.spec.clusterConfig.listenerClass.k8s_service_type(),
            ports=[
                client.V1ServicePort(name=SERVICE_PORT_NAME, port=port, protocol="TCP")
            ],
            selector=role_selector_labels(cluster.name, role.value),
        ),
    )
    return to_manifest(service)


def build_rolegroup_service(
    cluster: OdooCluster, image: ResolvedProductImage, rolegroup: RoleGroupRef
) -> Dict[str, Any]:
    """Headless Service giving the StatefulSet pods stable names."""
    ports = [
        client.V1ServicePort(name=METRICS_PORT_NAME, port=METRICS_PORT, protocol="TCP")
    ]
    http_port = OdooRole(rolegroup.role).get_http_port()
    if http_port is not None:
        ports.append(client.V1ServicePort(name=HTTP_PORT_NAME, port=http_port, protocol="TCP"))

    labels = _labels(cluster, image, rolegroup.role, rolegroup.role_group)
    labels["prometheus.io/scrape"] = "true"
    service = client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=object_meta(
            rolegroup.object_name(), cluster.namespace, labels, cluster.owner_reference()
        ),
        spec=client.V1ServiceSpec(
            cluster_ip="None",
            ports=ports,
            selector=role_group_selector_labels(
                cluster.name, rolegroup.role, rolegroup.role_group
            ),
            publish_not_ready_addresses=True,
        ),
    )
    return to_manifest(service)


def build_rolegroup_config_map(
    cluster: OdooCluster,
    image: ResolvedProductImage,
    rolegroup: RoleGroupRef,
    rolegroup_config: RoleGroupConfig,
    ldap: Optional[LdapProvider],
    config: OdooConfig,
    vector_aggregator_address: Optional[str],
) -> Dict[str, Any]:
    app_config = add_odoo_config(
        rolegroup_config.files.get(ODOO_CONFIG_FILENAME, {}),
        cluster.spec.clusterConfig.authenticationConfig,
        ldap,
    )
    data = {ODOO_CONFIG_FILENAME: write_config_file(app_config)}
    data = extend_config_map_with_log_config(
        data,
        config.logging,
        Container.ODOO,
        vector_aggregator_address,
        str(rolegroup),
    )
    config_map = client.V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=object_meta(
            rolegroup.object_name(),
            cluster.namespace,
            _labels(cluster, image, rolegroup.role, rolegroup.role_group),
            cluster.owner_reference(),
        ),
        data=data,
    )
    return to_manifest(config_map)


def build_mapped_envs(
    cluster: OdooCluster, rolegroup_config: RoleGroupConfig, git_sync: Optional[GitSync]
) -> List[client.V1EnvVar]:
    """Secret references, git-sync location and feature flags."""
    cluster_config = cluster.spec.clusterConfig
    env = []
    secret = rolegroup_config.env.get("credentialsSecret")
    if secret:
        env.extend(env_var_from_secret(name, secret, key) for name, key in MAPPED_SECRET_ENVS)

    if git_sync is not None:
        env.append(
            client.V1EnvVar(
                name="ODOO__CORE__DAGS_FOLDER",
                value=f"{GIT_SYNC_DIR}/{GIT_LINK}/{git_sync.folder.strip('/')}".rstrip("/"),
            )
        )

    env.append(
        client.V1EnvVar(
            name="ODOO__CORE__LOAD_EXAMPLES",
            value="True" if cluster_config.loadExamples else "False",
        )
    )
    if cluster_config.exposeConfig:
        env.append(client.V1EnvVar(name="ODOO__WEBSERVER__EXPOSE_CONFIG", value="True"))
    env.append(client.V1EnvVar(name="ODOO__CORE__EXECUTOR", value=cluster_config.executor))
    return env


def build_gitsync_envs(rolegroup_config: RoleGroupConfig) -> List[client.V1EnvVar]:
    secret = rolegroup_config.env.get("gitCredentialsSecret")
    if not secret:
        return []
    return [
        env_var_from_secret("GIT_SYNC_USERNAME", secret, "user"),
        env_var_from_secret("GIT_SYNC_PASSWORD", secret, "password"),
    ]


def build_static_envs() -> List[client.V1EnvVar]:
    return [
        client.V1EnvVar(name="PYTHONPATH", value=LOG_CONFIG_DIR),
        client.V1EnvVar(
            name="ODOO__LOGGING__LOGGING_CONFIG_CLASS", value="log_config.LOGGING_CONFIG"
        ),
        client.V1EnvVar(name="ODOO__METRICS__STATSD_ON", value="True"),
        client.V1EnvVar(name="ODOO__METRICS__STATSD_HOST", value="0.0.0.0"),
        client.V1EnvVar(name="ODOO__METRICS__STATSD_PORT", value="9125"),
        client.V1EnvVar(
            name="ODOO__API__AUTH_BACKEND", value="odoo.api.auth.backend.basic_auth"
        ),
    ]


def _gitsync_container(
    git_sync: GitSync, image: ResolvedProductImage, rolegroup_config: RoleGroupConfig
) -> client.V1Container:
    return client.V1Container(
        name=f"{GIT_SYNC_NAME}-1",
        image=image.image,
        image_pull_policy=image.image_pull_policy,
        command=["/bin/bash", "-x", "-euo", "pipefail", "-c"],
        args=[" ".join(git_sync.get_args())],
        env=build_gitsync_envs(rolegroup_config) or None,
        resources=client.V1ResourceRequirements(**SIDECAR_RESOURCES.to_requirements()),
        volume_mounts=[client.V1VolumeMount(name=GIT_CONTENT, mount_path=GIT_ROOT)],
    )


def _metrics_container(image: ResolvedProductImage) -> client.V1Container:
    return client.V1Container(
        name="metrics",
        image=image.image,
        image_pull_policy=image.image_pull_policy,
        command=["/bin/bash", "-c"],
        args=["/stackable/statsd_exporter"],
        ports=[
            client.V1ContainerPort(
                name=METRICS_PORT_NAME, container_port=METRICS_PORT, protocol="TCP"
            )
        ],
        resources=client.V1ResourceRequirements(**SIDECAR_RESOURCES.to_requirements()),
    )


def _volumes(
    cluster: OdooCluster, rolegroup: RoleGroupRef, config: OdooConfig, extra: List[Dict[str, Any]]
) -> List[Any]:
    main_log = config.logging.containers.get(Container.ODOO)
    log_config_map = (main_log.custom_config_map if main_log else None) or rolegroup.object_name()
    return [
        client.V1Volume(
            name=CONFIG_VOLUME_NAME,
            config_map=client.V1ConfigMapVolumeSource(name=rolegroup.object_name()),
        ),
        client.V1Volume(
            name=LOG_CONFIG_VOLUME_NAME,
            config_map=client.V1ConfigMapVolumeSource(name=log_config_map),
        ),
        client.V1Volume(
            name=LOG_VOLUME_NAME,
            empty_dir=client.V1EmptyDirVolumeSource(size_limit=log_volume_size_limit()),
        ),
        *cluster.volumes(),
        *extra,
    ]


def build_server_rolegroup_statefulset(
    cluster: OdooCluster,
    image: ResolvedProductImage,
    role: OdooRole,
    rolegroup: RoleGroupRef,
    rolegroup_config: RoleGroupConfig,
    ldap: Optional[LdapProvider],
    service_account_name: str,
    config: OdooConfig,
    git_sync: Optional[GitSync] = None,
) -> Dict[str, Any]:
    role_spec = cluster.get_role(role)
    group_spec = role_spec.roleGroups.get(rolegroup.role_group)

    ldap_volumes, ldap_mounts = ldap.volumes_and_mounts() if ldap else ([], [])

    env = [
        client.V1EnvVar(name=name, value=value)
        for name, value in sorted(rolegroup_config.env.items())
    ]
    env.extend(build_mapped_envs(cluster, rolegroup_config, git_sync))
    env.extend(build_static_envs())

    main = client.V1Container(
        name=Container.ODOO.value,
        image=image.image,
        image_pull_policy=image.image_pull_policy,
        command=["/bin/bash"],
        args=["-c", "; ".join(role.get_commands())],
        env=env,
        resources=client.V1ResourceRequirements(**config.resources.to_requirements()),
        volume_mounts=[
            client.V1VolumeMount(name=CONFIG_VOLUME_NAME, mount_path=CONFIG_PATH),
            client.V1VolumeMount(name=LOG_CONFIG_VOLUME_NAME, mount_path=LOG_CONFIG_DIR),
            client.V1VolumeMount(name=LOG_VOLUME_NAME, mount_path=STACKABLE_LOG_DIR),
            *cluster.volume_mounts(),
            *ldap_mounts,
        ],
    )
    http_port = role.get_http_port()
    if http_port is not None:
        main.ports = [
            client.V1ContainerPort(name=HTTP_PORT_NAME, container_port=http_port, protocol="TCP")
        ]
        probe = dict(
            tcp_socket=client.V1TCPSocketAction(port=http_port),
            initial_delay_seconds=20,
            period_seconds=5,
        )
        main.readiness_probe = client.V1Probe(**probe)
        main.liveness_probe = client.V1Probe(**probe)

    containers = [main, _metrics_container(image)]
    if git_sync is not None:
        containers.append(_gitsync_container(git_sync, image, rolegroup_config))
    if config.logging.enableVectorAgent:
        containers.append(
            vector_container(
                image.image,
                image.image_pull_policy,
                VECTOR_RESOURCES,
                config.logging.containers.get(Container.VECTOR),
            )
        )

    pod_labels = _labels(cluster, image, rolegroup.role, rolegroup.role_group)
    pod_template = client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(labels=pod_labels),
        spec=client.V1PodSpec(
            containers=containers,
            service_account_name=service_account_name,
            security_context=client.V1PodSecurityContext(
                run_as_user=ODOO_UID, run_as_group=0, fs_group=ODOO_UID
            ),
            affinity=config.affinity.to_pod_affinity(),
            node_selector=config.affinity.nodeSelector,
            image_pull_secrets=[
                client.V1LocalObjectReference(name=s["name"]) for s in image.pull_secrets
            ] or None,
            volumes=_volumes(cluster, rolegroup, config, ldap_volumes),
        ),
    )
    template = to_manifest(pod_template)
    for overrides in (role_spec.podOverrides, group_spec.podOverrides if group_spec else {}):
        if overrides:
            template = deep_merge(template, overrides)

    labels = dict(pod_labels)
    labels["restarter.stackable.tech/enabled"] = "true"
    stateful_set = client.V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=object_meta(
            rolegroup.object_name(), cluster.namespace, labels, cluster.owner_reference()
        ),
        spec=client.V1StatefulSetSpec(
            pod_management_policy="Parallel",
            replicas=group_spec.replicas if group_spec else None,
            selector=client.V1LabelSelector(
                match_labels=role_group_selector_labels(
                    cluster.name, rolegroup.role, rolegroup.role_group
                )
            ),
            service_name=rolegroup.object_name(),
            template=client.V1PodTemplateSpec(),
        ),
    )
    manifest = to_manifest(stateful_set)
    manifest["spec"]["template"] = template
    return manifest
