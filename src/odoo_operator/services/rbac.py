"""Service account and role binding for the pods of a resource."""

from typing import Any, Dict, Tuple

import kubernetes

from odoo_operator.constants import APP_NAME
from odoo_operator.crd.base import CustomResource
from odoo_operator.services.metadata import object_meta, to_manifest

CLUSTER_ROLE_NAME = f"{APP_NAME}-clusterrole"


def build_rbac_resources(
    owner: CustomResource, name_prefix: str, labels: Dict[str, str]
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Service account ``<prefix>-serviceaccount`` bound to the product cluster role.

    Returns the service account and role binding manifests.
    """
    namespace = owner.require_namespace()
    service_account_name = f"{name_prefix}-serviceaccount"

    service_account = kubernetes.client.V1ServiceAccount(
        api_version="v1",
        kind="ServiceAccount",
        metadata=object_meta(
            service_account_name, namespace, labels, owner.owner_reference()
        ),
    )

    role_binding = kubernetes.client.V1RoleBinding(
        api_version="rbac.authorization.k8s.io/v1",
        kind="RoleBinding",
        metadata=object_meta(
            f"{name_prefix}-rolebinding", namespace, labels, owner.owner_reference()
        ),
        role_ref=kubernetes.client.V1RoleRef(
            api_group="rbac.authorization.k8s.io",
            kind="ClusterRole",
            name=CLUSTER_ROLE_NAME,
        ),
        subjects=[
            kubernetes.client.RbacV1Subject(
                kind="ServiceAccount",
                name=service_account_name,
                namespace=namespace,
            )
        ],
    )

    return to_manifest(service_account), to_manifest(role_binding)
