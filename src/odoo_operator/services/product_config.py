"""Product configuration: property defaults, validation and layering."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field

from odoo_operator.constants import ODOO_CONFIG_FILENAME, PRODUCT_CONFIG_PATHS
from odoo_operator.errors import InvalidProductConfigError, OperatorError
from odoo_operator.models.roles import OdooRole

logger = logging.getLogger(__name__)

ENV = "env"
FILE = "file"


class PropertySpec(BaseModel):
    name: str
    kind: str = Field(..., pattern="^(env|file)$")
    file: Optional[str] = None
    roles: List[str] = Field(default_factory=lambda: OdooRole.roles())
    default: Optional[str] = None
    allowedValues: Optional[List[str]] = None
    required: bool = False

    def applies_to(self, role: str, kind: str, file: Optional[str]) -> bool:
        return role in self.roles and self.kind == kind and (kind == ENV or self.file == file)


class ProductConfigSpec(BaseModel):
    version: str = "0.1.0"
    properties: List[PropertySpec] = Field(default_factory=list)


class ProductConfigManager:
    def __init__(self, spec: ProductConfigSpec, source: Optional[str] = None):
        self.spec = spec
        self.source = source

    @classmethod
    def from_yaml_file(cls, path) -> "ProductConfigManager":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(ProductConfigSpec.model_validate(data), source=str(path))

    @classmethod
    def load(cls, paths: Optional[Iterable] = None) -> "ProductConfigManager":
        """Load the first existing file of ``paths`` (default search list)."""
        candidates = [Path(p) for p in (paths or PRODUCT_CONFIG_PATHS)]
        for candidate in candidates:
            if candidate.is_file():
                logger.info(f"Loading product config from {candidate}")
                return cls.from_yaml_file(candidate)
        raise OperatorError(
            "no product config found", searched=", ".join(str(c) for c in candidates)
        )

    def _properties(self, role: str, kind: str, file: Optional[str]) -> List[PropertySpec]:
        return [p for p in self.spec.properties if p.applies_to(role, kind, file)]

    def resolve(
        self,
        role: str,
        kind: str,
        file: Optional[str],
        config: Dict[str, str],
        **context: str,
    ) -> Dict[str, str]:
        """Fill defaults under ``config`` and validate the result."""
        result = {}
        for prop in self._properties(role, kind, file):
            if prop.default is not None:
                result[prop.name] = prop.default
        result.update(config)

        for prop in self._properties(role, kind, file):
            value = result.get(prop.name)
            if value is None:
                if prop.required:
                    raise InvalidProductConfigError(
                        f"required property {prop.name} is not set", **context
                    )
                continue
            if prop.allowedValues is not None and value not in prop.allowedValues:
                raise InvalidProductConfigError(
                    f"{prop.name}={value!r} is not one of {prop.allowedValues}", **context
                )
        return result


@dataclass
class RoleGroupConfig:
    """Key/value maps of one role group: env vars and file contents."""

    env: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, Dict[str, str]] = field(default_factory=dict)


def compute_env(cluster, git_sync) -> Dict[str, str]:
    env = {"credentialsSecret": cluster.spec.clusterConfig.credentialsSecret}
    if git_sync is not None and git_sync.credentialsSecret:
        env["gitCredentialsSecret"] = git_sync.credentialsSecret
    return env


def compute_role_group_config(
    cluster,
    role: OdooRole,
    role_group: str,
    product_config: ProductConfigManager,
    git_sync=None,
) -> RoleGroupConfig:
    """Computed values, then role and role group overrides, then defaults.

    ``git_sync`` is the source resolved once per reconcile by the caller.
    """
    role_spec = cluster.get_role(role)
    group_spec = role_spec.roleGroups.get(role_group)
    layers = [role_spec, group_spec] if group_spec is not None else [role_spec]
    context = {"rolegroup": str(cluster.role_group_ref(role, role_group))}

    env = compute_env(cluster, git_sync)
    files: Dict[str, Dict[str, str]] = {ODOO_CONFIG_FILENAME: {}}
    for layer in layers:
        env.update(layer.envOverrides)
        for file_name, overrides in layer.configOverrides.items():
            files.setdefault(file_name, {}).update(overrides)

    return RoleGroupConfig(
        env=product_config.resolve(role.value, ENV, None, env, **context),
        files={
            name: product_config.resolve(role.value, FILE, name, values, **context)
            for name, values in files.items()
        },
    )
