"""The roles an Odoo cluster consists of."""

from enum import Enum
from typing import List, Optional

from odoo_operator.constants import CONFIG_PATH, ODOO_CONFIG_FILENAME, ODOO_HOME


class OdooRole(str, Enum):
    WEBSERVER = "webserver"
    SCHEDULER = "scheduler"
    WORKER = "worker"

    @property
    def spec_key(self) -> str:
        """Field of the cluster spec holding this role."""
        return f"{self.value}s"

    def get_commands(self) -> List[str]:
        """Shell commands run by the main container, in order."""
        return [
            f"cp -RL {CONFIG_PATH}/{ODOO_CONFIG_FILENAME} {ODOO_HOME}/{ODOO_CONFIG_FILENAME}",
            _ROLE_COMMANDS[self],
        ]

    def get_http_port(self) -> Optional[int]:
        return _ROLE_HTTP_PORTS[self]

    @classmethod
    def roles(cls) -> List[str]:
        return [role.value for role in cls]


_ROLE_COMMANDS = {
    OdooRole.WEBSERVER: "odoo webserver",
    OdooRole.SCHEDULER: "odoo scheduler",
    OdooRole.WORKER: "odoo celery worker",
}

_ROLE_HTTP_PORTS = {
    OdooRole.WEBSERVER: 8080,
    OdooRole.SCHEDULER: None,
    OdooRole.WORKER: None,
}
