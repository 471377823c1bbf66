"""Rendering of ``webserver_config.py``, the Flask app configuration."""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import jinja2

from odoo_operator.errors import ConfigFileError
from odoo_operator.models.cluster import (
    LdapRolesSyncMoment,
    OdooClusterAuthenticationConfig,
)
from odoo_operator.services.authentication import LdapProvider

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

PYTHON_IMPORTS = [
    "import os",
    "from odoo.www.fab_security.manager import (AUTH_DB, AUTH_LDAP, AUTH_OAUTH, AUTH_OID, AUTH_REMOTE_USER)",
    "basedir = os.path.abspath(os.path.dirname(__file__))",
    "WTF_CSRF_ENABLED = True",
]


class PythonType(Enum):
    EXPRESSION = "expression"
    BOOL_LITERAL = "bool"
    STRING_LITERAL = "string"


class OdooConfigOptions(str, Enum):
    AUTH_TYPE = "AUTH_TYPE"
    AUTH_USER_REGISTRATION = "AUTH_USER_REGISTRATION"
    AUTH_USER_REGISTRATION_ROLE = "AUTH_USER_REGISTRATION_ROLE"
    AUTH_ROLES_SYNC_AT_LOGIN = "AUTH_ROLES_SYNC_AT_LOGIN"
    AUTH_LDAP_SERVER = "AUTH_LDAP_SERVER"
    AUTH_LDAP_SEARCH = "AUTH_LDAP_SEARCH"
    AUTH_LDAP_SEARCH_FILTER = "AUTH_LDAP_SEARCH_FILTER"
    AUTH_LDAP_UID_FIELD = "AUTH_LDAP_UID_FIELD"
    AUTH_LDAP_GROUP_FIELD = "AUTH_LDAP_GROUP_FIELD"
    AUTH_LDAP_FIRSTNAME_FIELD = "AUTH_LDAP_FIRSTNAME_FIELD"
    AUTH_LDAP_LASTNAME_FIELD = "AUTH_LDAP_LASTNAME_FIELD"
    AUTH_LDAP_EMAIL_FIELD = "AUTH_LDAP_EMAIL_FIELD"
    AUTH_LDAP_BIND_USER = "AUTH_LDAP_BIND_USER"
    AUTH_LDAP_BIND_PASSWORD = "AUTH_LDAP_BIND_PASSWORD"
    AUTH_LDAP_TLS_DEMAND = "AUTH_LDAP_TLS_DEMAND"
    AUTH_LDAP_TLS_CERTFILE = "AUTH_LDAP_TLS_CERTFILE"
    AUTH_LDAP_TLS_KEYFILE = "AUTH_LDAP_TLS_KEYFILE"
    AUTH_LDAP_TLS_CACERTFILE = "AUTH_LDAP_TLS_CACERTFILE"
    AUTH_LDAP_ALLOW_SELF_SIGNED = "AUTH_LDAP_ALLOW_SELF_SIGNED"

    @property
    def python_type(self) -> PythonType:
        return _PYTHON_TYPES.get(self, PythonType.STRING_LITERAL)


_PYTHON_TYPES = {
    OdooConfigOptions.AUTH_TYPE: PythonType.EXPRESSION,
    OdooConfigOptions.AUTH_USER_REGISTRATION: PythonType.BOOL_LITERAL,
    OdooConfigOptions.AUTH_ROLES_SYNC_AT_LOGIN: PythonType.BOOL_LITERAL,
    OdooConfigOptions.AUTH_LDAP_BIND_USER: PythonType.EXPRESSION,
    OdooConfigOptions.AUTH_LDAP_BIND_PASSWORD: PythonType.EXPRESSION,
    OdooConfigOptions.AUTH_LDAP_TLS_DEMAND: PythonType.BOOL_LITERAL,
    OdooConfigOptions.AUTH_LDAP_ALLOW_SELF_SIGNED: PythonType.BOOL_LITERAL,
}


def python_type_of(name: str) -> PythonType:
    """Known options carry a type; anything else is written verbatim."""
    try:
        return OdooConfigOptions(name).python_type
    except ValueError:
        return PythonType.EXPRESSION


def _string_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _bool_literal(name: str, value: str) -> str:
    lowered = value.strip().lower()
    if lowered == "true":
        return "True"
    if lowered == "false":
        return "False"
    raise ConfigFileError(f"{value!r} is not a valid boolean", option=name)


def render_value(name: str, value: str) -> str:
    python_type = python_type_of(name)
    if python_type is PythonType.BOOL_LITERAL:
        return _bool_literal(name, value)
    if python_type is PythonType.STRING_LITERAL:
        return _string_literal(value)
    return value


def template_env() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def write_config_file(
    config: Dict[str, str], imports: Optional[List[str]] = None
) -> str:
    """Import preamble followed by one assignment per key, sorted by key."""
    assignments = [(name, render_value(name, config[name])) for name in sorted(config)]
    template = template_env().get_template("webserver_config.py.j2")
    return template.render(
        imports=PYTHON_IMPORTS if imports is None else imports,
        assignments=assignments,
    )


def add_odoo_config(
    config: Dict[str, str],
    auth_config: Optional[OdooClusterAuthenticationConfig],
    ldap: Optional[LdapProvider],
) -> Dict[str, str]:
    """Add authentication settings; keys already present are kept."""
    result = dict(config)
    if ldap is not None:
        auth_config = auth_config or OdooClusterAuthenticationConfig()
        ldap_settings = {
            OdooConfigOptions.AUTH_TYPE: "AUTH_LDAP",
            OdooConfigOptions.AUTH_USER_REGISTRATION: str(auth_config.userRegistration).lower(),
            OdooConfigOptions.AUTH_USER_REGISTRATION_ROLE: auth_config.userRegistrationRole,
            OdooConfigOptions.AUTH_ROLES_SYNC_AT_LOGIN: str(
                auth_config.syncRolesAt is LdapRolesSyncMoment.LOGIN
            ).lower(),
            OdooConfigOptions.AUTH_LDAP_SERVER: ldap.url(),
            OdooConfigOptions.AUTH_LDAP_SEARCH: ldap.searchBase,
            OdooConfigOptions.AUTH_LDAP_SEARCH_FILTER: ldap.searchFilter,
            OdooConfigOptions.AUTH_LDAP_UID_FIELD: ldap.ldapFieldNames.uid,
            OdooConfigOptions.AUTH_LDAP_GROUP_FIELD: ldap.ldapFieldNames.group,
            OdooConfigOptions.AUTH_LDAP_FIRSTNAME_FIELD: ldap.ldapFieldNames.givenName,
            OdooConfigOptions.AUTH_LDAP_LASTNAME_FIELD: ldap.ldapFieldNames.surname,
            OdooConfigOptions.AUTH_LDAP_EMAIL_FIELD: ldap.ldapFieldNames.email,
            OdooConfigOptions.AUTH_LDAP_TLS_DEMAND: str(ldap.use_tls).lower(),
            OdooConfigOptions.AUTH_LDAP_ALLOW_SELF_SIGNED: str(
                ldap.use_tls and not ldap.verifies_server
            ).lower(),
        }
        ca_cert = ldap.tls_ca_cert_mount_path()
        if ca_cert is not None:
            ldap_settings[OdooConfigOptions.AUTH_LDAP_TLS_CACERTFILE] = ca_cert
        bind_paths = ldap.bind_credentials_mount_paths()
        if bind_paths is not None:
            user_path, password_path = bind_paths
            ldap_settings[OdooConfigOptions.AUTH_LDAP_BIND_USER] = (
                f"open('{user_path}').read()"
            )
            ldap_settings[OdooConfigOptions.AUTH_LDAP_BIND_PASSWORD] = (
                f"open('{password_path}').read()"
            )
        for option, value in ldap_settings.items():
            result.setdefault(option.value, value)

    result.setdefault(OdooConfigOptions.AUTH_TYPE.value, "AUTH_DB")
    return result
