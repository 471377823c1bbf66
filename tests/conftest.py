"""Shared fixtures: an in-memory resource manager and sample resources."""

import copy
from pathlib import Path

import pytest
import yaml

from odoo_operator.errors import NotFoundError
from odoo_operator.models.cluster import OdooCluster
from odoo_operator.services.product_config import ProductConfigManager
from odoo_operator.services.resource_manager import object_key

PROPERTIES_FILE = Path(__file__).resolve().parent.parent / "deploy" / "config-spec" / "properties.yaml"


class FakeResourceManager:
    """Stores applied objects in memory, keyed by (kind, namespace, name)."""

    def __init__(self):
        self.objects = {}
        self.applied = []
        self.statuses = []
        self.deleted = []
        self.annotations = []

    def seed(self, manifest):
        self.objects[object_key(manifest)] = copy.deepcopy(manifest)

    def apply(self, manifest):
        key = object_key(manifest)
        stored = copy.deepcopy(manifest)
        existing = self.objects.get(key)
        if existing is not None:
            if "status" in existing:
                stored["status"] = existing["status"]
            stored["metadata"].setdefault("uid", existing["metadata"].get("uid"))
        self.objects[key] = stored
        self.applied.append(copy.deepcopy(manifest))
        return copy.deepcopy(stored)

    def get(self, api_version, kind, name, namespace=None):
        key = (kind, namespace or "", name)
        if key not in self.objects:
            raise NotFoundError(f"{kind} not found", object=f"{namespace}/{name}")
        return copy.deepcopy(self.objects[key])

    def get_opt(self, api_version, kind, name, namespace=None):
        try:
            return self.get(api_version, kind, name, namespace)
        except NotFoundError:
            return None

    def list(self, api_version, kind, namespace=None, label_selector=None):
        items = []
        for (obj_kind, obj_ns, _), obj in self.objects.items():
            if obj_kind != kind or (namespace and obj_ns != namespace):
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(k) == v for k, v in (label_selector or {}).items()):
                items.append(copy.deepcopy(obj))
        return items

    def delete(self, api_version, kind, name, namespace=None):
        self.objects.pop((kind, namespace or "", name), None)
        self.deleted.append((kind, namespace or "", name))

    def apply_status(self, obj, status):
        key = object_key(obj)
        self.statuses.append((key, copy.deepcopy(status)))
        if key in self.objects:
            self.objects[key]["status"] = copy.deepcopy(status)

    def annotate(self, obj, annotations):
        self.annotations.append((object_key(obj), dict(annotations)))

    def delete_orphans(self, desired, kinds, namespace, label_selector, owner_uid=None):
        deleted = []
        for api_version, kind in kinds:
            for item in self.list(api_version, kind, namespace, label_selector):
                key = object_key(item)
                if key in desired:
                    continue
                owners = item["metadata"].get("ownerReferences") or []
                if owner_uid and not any(o.get("uid") == owner_uid for o in owners):
                    continue
                self.delete(api_version, kind, key[2], namespace)
                deleted.append(key)
        return deleted

    def applied_of_kind(self, kind):
        return [m for m in self.applied if m["kind"] == kind]

    def last_status(self, kind, name, namespace="default"):
        for key, status in reversed(self.statuses):
            if key == (kind, namespace, name):
                return status
        return None


CLUSTER_YAML = """
apiVersion: odoo.stackable.tech/v1alpha1
kind: OdooCluster
metadata:
  name: odoo
  namespace: default
  uid: 12345678-aaaa-bbbb-cccc-1234567890ab
spec:
  image:
    productVersion: 2.6.1
    stackableVersion: 0.0.0-dev
  clusterConfig:
    credentialsSecret: simple-odoo-credentials
    loadExamples: true
  webservers:
    roleGroups:
      default:
        replicas: 1
"""


@pytest.fixture
def cluster_body():
    return yaml.safe_load(CLUSTER_YAML)


@pytest.fixture
def make_cluster(cluster_body):
    def _make(**spec_updates):
        body = copy.deepcopy(cluster_body)
        body["spec"].update(spec_updates)
        return OdooCluster.from_body(body)

    return _make


@pytest.fixture
def manager():
    return FakeResourceManager()


@pytest.fixture
def product_config():
    return ProductConfigManager.from_yaml_file(PROPERTIES_FILE)
