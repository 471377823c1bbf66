"""Reconciler of OdooCluster resources."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from odoo_operator.constants import CLUSTER_CONTROLLER_NAME, DOCKER_IMAGE_BASE_NAME
from odoo_operator.errors import ExternalCallError, InvalidConfigError, RoleGroupConfigError
from odoo_operator.models.cluster import OdooCluster, OdooClusterStatus
from odoo_operator.models.database import OdooDB
from odoo_operator.models.image import ResolvedProductImage
from odoo_operator.models.roles import OdooRole
from odoo_operator.services.authentication import (
    LdapProvider,
    ldap_provider,
    resolve_authentication_class,
)
from odoo_operator.services.cluster_builder import (
    build_role_service,
    build_rolegroup_config_map,
    build_rolegroup_service,
    build_server_rolegroup_statefulset,
)
from odoo_operator.services.cluster_resources import (
    ClusterResourceApplyStrategy,
    ClusterResources,
)
from odoo_operator.services.conditions import (
    ClusterOperationsConditionBuilder,
    DbConditionBuilder,
    RoleGroupFailureConditionBuilder,
    StatefulSetConditionBuilder,
    compute_conditions,
)
from odoo_operator.services.controller import Action
from odoo_operator.services.product_config import (
    ProductConfigManager,
    compute_role_group_config,
)
from odoo_operator.services.product_logging import resolve_vector_aggregator_address
from odoo_operator.services.rbac import build_rbac_resources
from odoo_operator.services.resource_manager import ResourceManager

logger = logging.getLogger(__name__)


@dataclass
class ClusterContext:
    manager: ResourceManager
    product_config: ProductConfigManager


def _apply_status(manager, cluster: OdooCluster, builders) -> None:
    status = OdooClusterStatus(conditions=compute_conditions(cluster.conditions, builders))
    manager.apply_status(
        cluster.object_ref(), status.model_dump(mode="json", exclude_none=True)
    )


def wait_for_db_and_update_status(
    manager,
    cluster: OdooCluster,
    image: ResolvedProductImage,
    operation_conditions: ClusterOperationsConditionBuilder,
) -> bool:
    """Ensure the OdooDB exists and report whether role resources must wait."""
    odoo_db = OdooDB.for_odoo(cluster, image)
    try:
        manager.apply(odoo_db.to_manifest())
        current = OdooDB.from_body(
            manager.get(odoo_db.apiVersion, odoo_db.kind, odoo_db.name, odoo_db.namespace)
        )
    except ExternalCallError as e:
        raise ExternalCallError("failed to apply Odoo DB", object=str(cluster)) from e

    logger.debug(f"Checking status: {current.status}")
    db_conditions = DbConditionBuilder(current.status)
    if db_conditions.must_wait:
        _apply_status(manager, cluster, [db_conditions, operation_conditions])
    return db_conditions.must_wait


def reconcile_odoo(cluster: OdooCluster, ctx: ClusterContext) -> Action:
    logger.info(f"Starting reconcile of {cluster}")
    manager = ctx.manager
    namespace = cluster.require_namespace()
    image = cluster.spec.image.resolve(DOCKER_IMAGE_BASE_NAME)
    cluster_config = cluster.spec.clusterConfig
    operation_conditions = ClusterOperationsConditionBuilder(cluster.spec.clusterOperation)

    if wait_for_db_and_update_status(manager, cluster, image, operation_conditions):
        logger.info(f"{cluster} is waiting for its database")
        return Action.await_change()

    vector_address = resolve_vector_aggregator_address(
        manager, namespace, cluster_config.vectorAggregatorConfigMapName
    )
    authentication_class = resolve_authentication_class(
        manager, cluster_config.authenticationConfig
    )
    ldap: Optional[LdapProvider] = (
        ldap_provider(authentication_class) if authentication_class else None
    )

    cluster_resources = ClusterResources(
        CLUSTER_CONTROLLER_NAME,
        cluster,
        ClusterResourceApplyStrategy.from_cluster_operation(cluster.spec.clusterOperation),
    )
    service_account, role_binding = build_rbac_resources(
        cluster, cluster.name, cluster_resources.required_labels
    )
    cluster_resources.add(manager, service_account, "service account")
    cluster_resources.add(manager, role_binding, "role binding")
    service_account_name = service_account["metadata"]["name"]
    git_sync = cluster.git_sync()

    sts_conditions = StatefulSetConditionBuilder()
    failures: List[InvalidConfigError] = []

    for role in OdooRole:
        role_spec = cluster.get_role(role)
        if role_spec is None:
            continue

        http_port = role.get_http_port()
        if http_port is not None:
            cluster_resources.add(
                manager,
                build_role_service(cluster, image, role, http_port),
                f"role service for {role.value}",
            )

        for role_group in sorted(role_spec.roleGroups):
            rolegroup = cluster.role_group_ref(role, role_group)
            try:
                config = cluster.merged_config(role, rolegroup)
                rolegroup_config = compute_role_group_config(
                    cluster, role, role_group, ctx.product_config, git_sync
                )
                rg_service = build_rolegroup_service(cluster, image, rolegroup)
                rg_config_map = build_rolegroup_config_map(
                    cluster, image, rolegroup, rolegroup_config, ldap, config, vector_address
                )
                rg_stateful_set = build_server_rolegroup_statefulset(
                    cluster,
                    image,
                    role,
                    rolegroup,
                    rolegroup_config,
                    ldap,
                    service_account_name,
                    config,
                    git_sync,
                )
            except InvalidConfigError as e:
                logger.error(f"Skipping {rolegroup}: {e}")
                failures.append(e)
                continue

            cluster_resources.add(manager, rg_service, f"Service for {rolegroup}")
            cluster_resources.add(manager, rg_config_map, f"ConfigMap for {rolegroup}")
            sts_conditions.add(
                cluster_resources.add(manager, rg_stateful_set, f"StatefulSet for {rolegroup}")
            )

    if failures:
        logger.warning(f"Not deleting orphaned resources of {cluster}, role groups failed")
    else:
        cluster_resources.delete_orphaned_resources(manager)

    _apply_status(
        manager,
        cluster,
        [sts_conditions, operation_conditions, RoleGroupFailureConditionBuilder(failures)],
    )

    if failures:
        raise RoleGroupConfigError(failures, object=str(cluster))
    return Action.await_change()
