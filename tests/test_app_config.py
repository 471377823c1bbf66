"""Tests for rendering webserver_config.py."""

import pytest

from odoo_operator.errors import ConfigFileError
from odoo_operator.models.cluster import (
    LdapRolesSyncMoment,
    OdooClusterAuthenticationConfig,
)
from odoo_operator.services.app_config import add_odoo_config, render_value, write_config_file
from odoo_operator.services.authentication import LdapProvider


class TestRenderValue:
    def test_expression_is_verbatim(self):
        assert render_value("AUTH_TYPE", "AUTH_LDAP") == "AUTH_LDAP"

    def test_unknown_option_is_an_expression(self):
        assert render_value("SESSION_COOKIE_SAMESITE", '"Lax"') == '"Lax"'

    def test_string_literal_is_quoted_and_escaped(self):
        assert render_value("AUTH_LDAP_SEARCH", 'ou="users"') == '"ou=\\"users\\""'

    def test_bool_literal(self):
        assert render_value("AUTH_USER_REGISTRATION", "true") == "True"
        assert render_value("AUTH_USER_REGISTRATION", "False") == "False"

    def test_invalid_bool_raises(self):
        with pytest.raises(ConfigFileError):
            render_value("AUTH_USER_REGISTRATION", "yes")


class TestWriteConfigFile:
    def test_imports_then_sorted_assignments(self):
        content = write_config_file({"B": "2", "A": "1"}, imports=["import os"])
        assert content == "import os\n\nA = 1\nB = 2\n"

    def test_default_imports(self):
        content = write_config_file({"AUTH_TYPE": "AUTH_DB"})
        assert content.startswith("import os\n")
        assert "WTF_CSRF_ENABLED = True" in content
        assert content.endswith("AUTH_TYPE = AUTH_DB\n")


class TestAddOdooConfig:
    def test_defaults_to_database_auth(self):
        assert add_odoo_config({}, None, None) == {"AUTH_TYPE": "AUTH_DB"}

    def test_user_value_wins(self):
        assert add_odoo_config({"AUTH_TYPE": "AUTH_OAUTH"}, None, None) == {
            "AUTH_TYPE": "AUTH_OAUTH"
        }

    def test_ldap_settings(self):
        ldap = LdapProvider(
            hostname="openldap",
            searchBase="ou=users,dc=example,dc=org",
            bindCredentials={"secretClass": "ldap-bind"},
            tls={"verification": {"server": {"caCert": {"secretClass": "tls"}}}},
        )
        auth = OdooClusterAuthenticationConfig(
            authenticationClass="ldap", syncRolesAt=LdapRolesSyncMoment.LOGIN
        )

        config = add_odoo_config({}, auth, ldap)

        assert config["AUTH_TYPE"] == "AUTH_LDAP"
        assert config["AUTH_LDAP_SERVER"] == "ldaps://openldap:636"
        assert config["AUTH_ROLES_SYNC_AT_LOGIN"] == "true"
        assert config["AUTH_LDAP_TLS_DEMAND"] == "true"
        assert config["AUTH_LDAP_ALLOW_SELF_SIGNED"] == "false"
        assert config["AUTH_LDAP_TLS_CACERTFILE"] == "/stackable/secrets/tls/ca.crt"
        assert config["AUTH_LDAP_BIND_USER"] == "open('/stackable/secrets/ldap-bind/user').read()"

        rendered = write_config_file(config)
        assert "AUTH_LDAP_BIND_PASSWORD = open('/stackable/secrets/ldap-bind/password').read()" in rendered
        assert 'AUTH_LDAP_SEARCH = "ou=users,dc=example,dc=org"' in rendered
