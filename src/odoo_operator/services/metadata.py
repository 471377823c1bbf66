"""Labels, selectors and object metadata shared by all built resources."""

from typing import Any, Dict, Optional

import kubernetes

from odoo_operator.constants import APP_NAME, OPERATOR_NAME

_serializer = kubernetes.client.ApiClient()


def build_recommended_labels(
    owner_name: str,
    controller_name: str,
    app_version: str,
    role: str,
    role_group: str,
) -> Dict[str, str]:
    return {
        "app.kubernetes.io/name": APP_NAME,
        "app.kubernetes.io/instance": owner_name,
        "app.kubernetes.io/version": app_version,
        "app.kubernetes.io/managed-by": f"{OPERATOR_NAME}_{controller_name}",
        "app.kubernetes.io/component": role,
        "app.kubernetes.io/role-group": role_group,
    }


def required_labels(owner_name: str, controller_name: str) -> Dict[str, str]:
    """Labels every resource of a cluster carries, used to find orphans."""
    return {
        "app.kubernetes.io/name": APP_NAME,
        "app.kubernetes.io/instance": owner_name,
        "app.kubernetes.io/managed-by": f"{OPERATOR_NAME}_{controller_name}",
    }


def role_selector_labels(owner_name: str, role: str) -> Dict[str, str]:
    return {
        "app.kubernetes.io/name": APP_NAME,
        "app.kubernetes.io/instance": owner_name,
        "app.kubernetes.io/component": role,
    }


def role_group_selector_labels(
    owner_name: str, role: str, role_group: str
) -> Dict[str, str]:
    return {
        **role_selector_labels(owner_name, role),
        "app.kubernetes.io/role-group": role_group,
    }


def object_meta(
    name: str,
    namespace: Optional[str],
    labels: Dict[str, str],
    owner_reference: Optional[Dict[str, Any]] = None,
) -> kubernetes.client.V1ObjectMeta:
    owner_references = None
    if owner_reference is not None:
        owner_references = [
            kubernetes.client.V1OwnerReference(
                api_version=owner_reference["apiVersion"],
                kind=owner_reference["kind"],
                name=owner_reference["name"],
                uid=owner_reference["uid"],
                controller=owner_reference.get("controller", True),
                block_owner_deletion=owner_reference.get("blockOwnerDeletion", True),
            )
        ]
    return kubernetes.client.V1ObjectMeta(
        name=name,
        namespace=namespace,
        labels=dict(labels),
        owner_references=owner_references,
    )


def to_manifest(obj: Any) -> Dict[str, Any]:
    """Serialize a kubernetes client model into an API body (camelCase keys)."""
    return _serializer.sanitize_for_serialization(obj)


def deep_merge(base: Any, override: Any) -> Any:
    """Overlay ``override`` onto ``base``, returning a new structure.

    Maps merge key by key. Lists whose items are all named objects
    (containers, volumes, env vars) merge by ``name``; other lists are
    replaced.
    """
    if isinstance(base, dict) and isinstance(override, dict):
        merged = dict(base)
        for key, value in override.items():
            merged[key] = deep_merge(base[key], value) if key in base else value
        return merged
    if isinstance(base, list) and isinstance(override, list) and _named(base) and _named(override):
        merged = list(base)
        index = {item["name"]: i for i, item in enumerate(merged)}
        for item in override:
            if item["name"] in index:
                merged[index[item["name"]]] = deep_merge(merged[index[item["name"]]], item)
            else:
                merged.append(item)
        return merged
    return override


def _named(items: list) -> bool:
    return bool(items) and all(isinstance(i, dict) and "name" in i for i in items)
