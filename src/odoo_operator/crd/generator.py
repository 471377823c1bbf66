"""CRD generation from the registered pydantic models."""

import logging

import yaml

from .registry import CRDRegistry

logger = logging.getLogger(__name__)

PRESERVE_UNKNOWN = "x-kubernetes-preserve-unknown-fields"


class OpenAPIConverter:
    """Convert pydantic schemas to structural OpenAPI v3 schemas for CRDs."""

    @staticmethod
    def convert_schema(pydantic_schema):
        """Convert a pydantic JSON schema to an OpenAPI v3 object schema."""
        defs = pydantic_schema.get("$defs", {})
        openapi_schema = {"type": "object", "properties": {}}

        if "description" in pydantic_schema:
            openapi_schema["description"] = pydantic_schema["description"]
        if "properties" in pydantic_schema:
            openapi_schema["properties"] = OpenAPIConverter._convert_properties(
                pydantic_schema["properties"], defs
            )
        if "required" in pydantic_schema:
            openapi_schema["required"] = pydantic_schema["required"]

        return openapi_schema

    @staticmethod
    def _convert_properties(properties, defs):
        return {
            name: OpenAPIConverter._convert_property(schema, defs)
            for name, schema in properties.items()
        }

    @staticmethod
    def _resolve_ref(prop_schema, defs):
        ref_path = prop_schema["$ref"]
        def_name = ref_path.replace("#/$defs/", "")
        resolved = dict(defs.get(def_name, {}))
        # Sibling keywords (description, default) win over the referenced ones
        resolved.update({k: v for k, v in prop_schema.items() if k != "$ref"})
        return resolved

    @staticmethod
    def _convert_property(prop_schema, defs):
        """Convert a single property schema."""
        if "$ref" in prop_schema:
            return OpenAPIConverter._convert_property(
                OpenAPIConverter._resolve_ref(prop_schema, defs), defs
            )

        if "allOf" in prop_schema and len(prop_schema["allOf"]) == 1:
            merged = dict(prop_schema["allOf"][0])
            merged.update({k: v for k, v in prop_schema.items() if k != "allOf"})
            return OpenAPIConverter._convert_property(merged, defs)

        # Optional[X] arrives as anyOf [X, null]
        if "anyOf" in prop_schema:
            branches = [b for b in prop_schema["anyOf"] if b.get("type") != "null"]
            nullable = len(branches) != len(prop_schema["anyOf"])
            if len(branches) == 1:
                merged = dict(branches[0])
                if "description" in prop_schema:
                    merged["description"] = prop_schema["description"]
                converted = OpenAPIConverter._convert_property(merged, defs)
            else:
                converted = {PRESERVE_UNKNOWN: True}
                if "description" in prop_schema:
                    converted["description"] = prop_schema["description"]
            if nullable:
                converted["nullable"] = True
            return converted

        if prop_schema.get("type") == "array":
            converted = {"type": "array"}
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            converted["items"] = OpenAPIConverter._convert_property(
                prop_schema.get("items", {}), defs
            )
            return converted

        if prop_schema.get("type") == "object" or "properties" in prop_schema:
            converted = {"type": "object"}
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            if "properties" in prop_schema:
                converted["properties"] = OpenAPIConverter._convert_properties(
                    prop_schema["properties"], defs
                )
                if "required" in prop_schema:
                    converted["required"] = prop_schema["required"]
            elif isinstance(prop_schema.get("additionalProperties"), dict):
                converted["additionalProperties"] = OpenAPIConverter._convert_property(
                    prop_schema["additionalProperties"], defs
                )
            else:
                converted[PRESERVE_UNKNOWN] = True
            return converted

        result = {}
        for key in ("type", "format", "description", "enum"):
            if key in prop_schema:
                result[key] = prop_schema[key]
        if prop_schema.get("default") is not None and "type" in result:
            result["default"] = prop_schema["default"]

        # Untyped (Any) values are free-form Kubernetes structures
        if not result.get("type"):
            result.pop("enum", None)
            result[PRESERVE_UNKNOWN] = True

        return result


class OdooCRDManager:
    """Builds CustomResourceDefinition documents for every registered model."""

    def __init__(self):
        self.registry = CRDRegistry()
        self.converter = OpenAPIConverter()

    def _generate_crd_definition(self, model_info):
        """Generate a single CRD definition from model info."""
        model_class = model_info["model"]
        group = model_info["group"]
        plural = model_info["plural"]

        spec_schema = self.converter.convert_schema(model_class.model_json_schema())

        status_model = model_info.get("status_model")
        if status_model is not None:
            status_schema = self.converter.convert_schema(
                status_model.model_json_schema()
            )
        else:
            status_schema = {"type": "object"}
        # Leaves room for fields written by the operator framework
        status_schema[PRESERVE_UNKNOWN] = True
        status_schema["nullable"] = True

        names = {
            "plural": plural,
            "singular": model_info["singular"],
            "kind": model_info["kind"],
        }
        if model_info.get("short_names"):
            names["shortNames"] = model_info["short_names"]

        return {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": f"{plural}.{group}"},
            "spec": {
                "group": group,
                "names": names,
                "scope": model_info["scope"],
                "versions": [
                    {
                        "name": model_info["version"],
                        "served": True,
                        "storage": True,
                        "schema": {
                            "openAPIV3Schema": {
                                "type": "object",
                                "description": f"Auto-generated derived type for {model_class.__name__}",
                                "properties": {
                                    "spec": spec_schema,
                                    "status": status_schema,
                                },
                                "required": ["spec"],
                                "title": model_info["kind"],
                            }
                        },
                        "subresources": {"status": {}},
                    }
                ],
            },
        }

    def get_crds_as_dict(self):
        """Generate all CRDs as in-memory dictionary objects, keyed by CRD name."""
        self.registry.discover_models()
        crds = {}
        for model_key, model_info in sorted(self.registry.get_all_models().items()):
            crd_def = self._generate_crd_definition(model_info)
            crds[crd_def["metadata"]["name"]] = crd_def
            logger.debug(f"Generated CRD for {model_key}")
        return crds

    def render_yaml(self) -> str:
        """All CRDs as a multi-document YAML stream."""
        return yaml.safe_dump_all(
            list(self.get_crds_as_dict().values()),
            default_flow_style=False,
            sort_keys=False,
        )

    def apply_crds_to_cluster(self) -> int:
        """Create or replace every CRD in the connected cluster.

        Returns the number of CRDs applied.
        """
        from kubernetes import client

        api_client = client.ApiextensionsV1Api()
        applied_count = 0

        for crd_name, crd_def in self.get_crds_as_dict().items():
            try:
                existing = api_client.read_custom_resource_definition(crd_name)
                crd_def["metadata"]["resourceVersion"] = (
                    existing.metadata.resource_version
                )
                api_client.replace_custom_resource_definition(
                    name=crd_name, body=crd_def
                )
                logger.info(f"Updated CRD: {crd_name}")
            except client.exceptions.ApiException as e:
                if e.status != 404:
                    raise
                api_client.create_custom_resource_definition(body=crd_def)
                logger.info(f"Created CRD: {crd_name}")
            applied_count += 1

        logger.info(f"Applied {applied_count} CRDs to cluster")
        return applied_count
