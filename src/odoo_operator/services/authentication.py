"""LDAP authentication through a referenced AuthenticationClass."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from odoo_operator.constants import SECRETS_DIR
from odoo_operator.errors import (
    ExternalCallError,
    UnsupportedAuthenticationProviderError,
)
from odoo_operator.models.cluster import OdooClusterAuthenticationConfig

logger = logging.getLogger(__name__)

AUTHENTICATION_CLASS_API_VERSION = "authentication.stackable.tech/v1alpha1"
AUTHENTICATION_CLASS_KIND = "AuthenticationClass"
SECRET_CLASS_ANNOTATION = "secrets.stackable.tech/class"
SECRET_STORAGE_CLASS = "secrets.stackable.tech"


class LdapFieldNames(BaseModel):
    uid: str = "uid"
    group: str = "memberof"
    givenName: str = "givenName"
    surname: str = "sn"
    email: str = "mail"


class SecretClassVolume(BaseModel):
    secretClass: str


class LdapProvider(BaseModel):
    hostname: str
    port: Optional[int] = None
    searchBase: str = ""
    searchFilter: str = ""
    ldapFieldNames: LdapFieldNames = Field(default_factory=LdapFieldNames)
    bindCredentials: Optional[SecretClassVolume] = None
    tls: Optional[Dict[str, Any]] = None

    @property
    def use_tls(self) -> bool:
        return self.tls is not None

    @property
    def verifies_server(self) -> bool:
        return bool(self.tls and "server" in (self.tls.get("verification") or {}))

    def default_port(self) -> int:
        return 636 if self.use_tls else 389

    def url(self) -> str:
        scheme = "ldaps" if self.use_tls else "ldap"
        return f"{scheme}://{self.hostname}:{self.port or self.default_port()}"

    def tls_ca_secret_class(self) -> Optional[str]:
        if not self.verifies_server:
            return None
        ca_cert = self.tls["verification"]["server"].get("caCert") or {}
        return ca_cert.get("secretClass")

    def tls_ca_cert_mount_path(self) -> Optional[str]:
        secret_class = self.tls_ca_secret_class()
        if secret_class is None:
            return None
        return f"{SECRETS_DIR}/{secret_class}/ca.crt"

    def bind_credentials_mount_paths(self) -> Optional[Tuple[str, str]]:
        if self.bindCredentials is None:
            return None
        base = f"{SECRETS_DIR}/{self.bindCredentials.secretClass}"
        return f"{base}/user", f"{base}/password"

    def volumes_and_mounts(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Secret-operator volumes for bind credentials and the CA certificate."""
        volumes, mounts = [], []
        secret_classes = []
        if self.bindCredentials is not None:
            secret_classes.append(self.bindCredentials.secretClass)
        ca_class = self.tls_ca_secret_class()
        if ca_class is not None and ca_class not in secret_classes:
            secret_classes.append(ca_class)

        for secret_class in secret_classes:
            name = f"{secret_class}-secret-class"
            volumes.append(_secret_class_volume(name, secret_class))
            mounts.append({"name": name, "mountPath": f"{SECRETS_DIR}/{secret_class}"})
        return volumes, mounts


def _secret_class_volume(name: str, secret_class: str) -> Dict[str, Any]:
    return {
        "name": name,
        "ephemeral": {
            "volumeClaimTemplate": {
                "metadata": {"annotations": {SECRET_CLASS_ANNOTATION: secret_class}},
                "spec": {
                    "accessModes": ["ReadWriteOnce"],
                    "storageClassName": SECRET_STORAGE_CLASS,
                    "resources": {"requests": {"storage": "1"}},
                },
            }
        },
    }


def resolve_authentication_class(
    manager, auth_config: Optional[OdooClusterAuthenticationConfig]
) -> Optional[Dict[str, Any]]:
    if auth_config is None or not auth_config.authenticationClass:
        return None
    name = auth_config.authenticationClass
    try:
        return manager.get(AUTHENTICATION_CLASS_API_VERSION, AUTHENTICATION_CLASS_KIND, name)
    except ExternalCallError as e:
        raise ExternalCallError(
            "failed to retrieve AuthenticationClass", authentication_class=name
        ) from e


def ldap_provider(authentication_class: Dict[str, Any]) -> LdapProvider:
    """The LDAP provider of an AuthenticationClass; other providers are refused."""
    provider = (authentication_class.get("spec") or {}).get("provider") or {}
    name = authentication_class["metadata"]["name"]
    if "ldap" not in provider:
        kinds = ", ".join(sorted(provider)) or "none"
        raise UnsupportedAuthenticationProviderError(
            f"authentication provider {kinds} is not supported, only ldap is",
            authentication_class=name,
        )
    return LdapProvider.model_validate(provider["ldap"])
