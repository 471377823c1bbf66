"""Declarative access to Kubernetes objects through the dynamic client."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import kubernetes
from kubernetes import dynamic
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from odoo_operator.errors import ExternalCallError, NotFoundError

logger = logging.getLogger(__name__)

ObjectKey = Tuple[str, str, str]

_API_ERRORS = (ApiException, ResourceNotFoundError)


def _reason(error: Exception) -> str:
    return getattr(error, "reason", None) or str(error)


def object_key(manifest: Dict[str, Any]) -> ObjectKey:
    """(kind, namespace, name) of a manifest."""
    metadata = manifest.get("metadata") or {}
    return (manifest["kind"], metadata.get("namespace") or "", metadata["name"])


class ResourceManager:
    """Applies, reads and deletes objects on behalf of one controller.

    Objects are applied server side with the controller name as field
    manager, so repeated applies of the same manifest are no-ops.
    """

    def __init__(self, field_manager: str, api_client=None):
        self.field_manager = field_manager
        self.client = dynamic.DynamicClient(api_client or kubernetes.client.ApiClient())

    def _resource(self, api_version: str, kind: str):
        return self.client.resources.get(api_version=api_version, kind=kind)

    def apply(self, manifest: Dict[str, Any]) -> Dict[str, Any]:
        kind, namespace, name = object_key(manifest)
        try:
            resource = self._resource(manifest["apiVersion"], kind)
            result = self.client.server_side_apply(
                resource,
                body=manifest,
                name=name,
                namespace=namespace or None,
                field_manager=self.field_manager,
                force_conflicts=True,
            )
        except _API_ERRORS as e:
            raise ExternalCallError(
                f"failed to apply {kind}: {_reason(e)}", object=f"{namespace}/{name}"
            ) from e
        logger.debug(f"Applied {kind} {namespace}/{name}")
        return result.to_dict()

    def get(
        self, api_version: str, kind: str, name: str, namespace: Optional[str] = None
    ) -> Dict[str, Any]:
        try:
            resource = self._resource(api_version, kind)
            return resource.get(name=name, namespace=namespace).to_dict()
        except _API_ERRORS as e:
            if getattr(e, "status", None) == 404:
                raise NotFoundError(
                    f"{kind} not found", object=f"{namespace or ''}/{name}"
                ) from e
            raise ExternalCallError(
                f"failed to get {kind}: {_reason(e)}", object=f"{namespace or ''}/{name}"
            ) from e

    def get_opt(
        self, api_version: str, kind: str, name: str, namespace: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return self.get(api_version, kind, name, namespace)
        except NotFoundError:
            return None

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        selector = ",".join(f"{k}={v}" for k, v in (label_selector or {}).items())
        try:
            resource = self._resource(api_version, kind)
            result = resource.get(namespace=namespace, label_selector=selector or None)
        except _API_ERRORS as e:
            raise ExternalCallError(
                f"failed to list {kind}: {_reason(e)}", namespace=namespace or "*"
            ) from e
        return [item.to_dict() for item in result.items]

    def delete(
        self, api_version: str, kind: str, name: str, namespace: Optional[str] = None
    ) -> None:
        try:
            self._resource(api_version, kind).delete(name=name, namespace=namespace)
        except _API_ERRORS as e:
            if getattr(e, "status", None) == 404:
                return
            raise ExternalCallError(
                f"failed to delete {kind}: {_reason(e)}", object=f"{namespace}/{name}"
            ) from e
        logger.info(f"Deleted {kind} {namespace}/{name}")

    def apply_status(self, obj: Dict[str, Any], status: Dict[str, Any]) -> None:
        """Replace the status sub-resource of ``obj``."""
        kind, namespace, name = object_key(obj)
        try:
            resource = self._resource(obj["apiVersion"], kind)
            self.client.patch(
                resource.status,
                body={"status": status},
                name=name,
                namespace=namespace or None,
                content_type="application/merge-patch+json",
            )
        except _API_ERRORS as e:
            raise ExternalCallError(
                f"failed to update status of {kind}: {_reason(e)}",
                object=f"{namespace}/{name}",
            ) from e

    def annotate(self, obj: Dict[str, Any], annotations: Dict[str, str]) -> None:
        kind, namespace, name = object_key(obj)
        try:
            resource = self._resource(obj["apiVersion"], kind)
            self.client.patch(
                resource,
                body={"metadata": {"annotations": annotations}},
                name=name,
                namespace=namespace or None,
                content_type="application/merge-patch+json",
            )
        except _API_ERRORS as e:
            raise ExternalCallError(
                f"failed to annotate {kind}: {_reason(e)}", object=f"{namespace}/{name}"
            ) from e

    def delete_orphans(
        self,
        desired: Set[ObjectKey],
        kinds: Iterable[Tuple[str, str]],
        namespace: str,
        label_selector: Dict[str, str],
        owner_uid: Optional[str] = None,
    ) -> List[ObjectKey]:
        """Delete labelled objects of ``kinds`` that are not in ``desired``."""
        deleted = []
        for api_version, kind in kinds:
            for item in self.list(api_version, kind, namespace, label_selector):
                item.setdefault("kind", kind)
                key = object_key(item)
                if key in desired:
                    continue
                owners = item["metadata"].get("ownerReferences") or []
                if owner_uid and not any(o.get("uid") == owner_uid for o in owners):
                    continue
                self.delete(api_version, kind, key[2], namespace)
                deleted.append(key)
        return deleted
