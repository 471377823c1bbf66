"""Per role group configuration: resources, logging and affinity."""

from enum import Enum
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field

from odoo_operator.models.affinity import Affinity, AffinityFragment, default_affinity
from odoo_operator.models.fragments import Fragment
from odoo_operator.models.roles import OdooRole


class LogLevel(str, Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"
    NONE = "NONE"

    def to_python_expression(self) -> str:
        """Level as an expression usable in a Python logging config."""
        return _PYTHON_LOG_LEVELS[self]

    def to_vector_literal(self) -> str:
        return _VECTOR_LOG_LEVELS[self]


_PYTHON_LOG_LEVELS = {
    LogLevel.TRACE: "logging.DEBUG",
    LogLevel.DEBUG: "logging.DEBUG",
    LogLevel.INFO: "logging.INFO",
    LogLevel.WARN: "logging.WARNING",
    LogLevel.ERROR: "logging.ERROR",
    LogLevel.FATAL: "logging.CRITICAL",
    LogLevel.NONE: "logging.CRITICAL + 1",
}

_VECTOR_LOG_LEVELS = {
    LogLevel.TRACE: "trace",
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warn",
    LogLevel.ERROR: "error",
    LogLevel.FATAL: "error",
    LogLevel.NONE: "off",
}


class Container(str, Enum):
    """Containers of a role group pod with configurable logging."""

    ODOO = "odoo"
    VECTOR = "vector"


class CpuLimitsFragment(Fragment):
    min: Optional[str] = Field(default=None, description="CPU request")
    max: Optional[str] = Field(default=None, description="CPU limit")


class MemoryLimitsFragment(Fragment):
    limit: Optional[str] = Field(default=None, description="Memory request and limit")


class ResourcesFragment(Fragment):
    cpu: Optional[CpuLimitsFragment] = None
    memory: Optional[MemoryLimitsFragment] = None


class CpuLimits(BaseModel):
    min: str
    max: str


class MemoryLimits(BaseModel):
    limit: str


class Resources(BaseModel):
    cpu: CpuLimits
    memory: MemoryLimits

    def to_requirements(self) -> Dict[str, Dict[str, str]]:
        """Container resource requirements; memory requests equal the limit."""
        return {
            "requests": {"cpu": self.cpu.min, "memory": self.memory.limit},
            "limits": {"cpu": self.cpu.max, "memory": self.memory.limit},
        }


def resources(cpu_min: str, cpu_max: str, memory: str) -> ResourcesFragment:
    return ResourcesFragment(
        cpu=CpuLimitsFragment(min=cpu_min, max=cpu_max),
        memory=MemoryLimitsFragment(limit=memory),
    )


class AppenderConfigFragment(Fragment):
    level: Optional[LogLevel] = None


class LoggerConfigFragment(Fragment):
    level: Optional[LogLevel] = None


class CustomLogConfig(Fragment):
    configMap: Optional[str] = Field(
        default=None, description="ConfigMap holding a user supplied log config"
    )


class ContainerLogConfigFragment(Fragment):
    custom: Optional[CustomLogConfig] = None
    console: Optional[AppenderConfigFragment] = None
    file: Optional[AppenderConfigFragment] = None
    loggers: Optional[Dict[str, LoggerConfigFragment]] = None


class LoggingFragment(Fragment):
    enableVectorAgent: Optional[bool] = Field(
        default=None, description="Ship logs through a Vector side-car"
    )
    containers: Optional[Dict[Container, ContainerLogConfigFragment]] = None


class AppenderConfig(BaseModel):
    level: LogLevel


class LoggerConfig(BaseModel):
    level: LogLevel


class ContainerLogConfig(BaseModel):
    custom: Optional[CustomLogConfig] = None
    console: AppenderConfig
    file: AppenderConfig
    loggers: Dict[str, LoggerConfig]

    @property
    def custom_config_map(self) -> Optional[str]:
        return self.custom.configMap if self.custom else None

    @property
    def root_level(self) -> LogLevel:
        root = self.loggers.get(ROOT_LOGGER)
        return root.level if root else LogLevel.INFO


class Logging(BaseModel):
    enableVectorAgent: bool
    containers: Dict[Container, ContainerLogConfig]


ROOT_LOGGER = "ROOT"


def default_container_log_config() -> ContainerLogConfigFragment:
    return ContainerLogConfigFragment(
        console=AppenderConfigFragment(level=LogLevel.INFO),
        file=AppenderConfigFragment(level=LogLevel.INFO),
        loggers={ROOT_LOGGER: LoggerConfigFragment(level=LogLevel.INFO)},
    )


def default_logging(containers: Iterable[Enum]) -> dict:
    """Logging defaults for the given containers, as fragment field values."""
    return {
        "enableVectorAgent": False,
        "containers": {c: default_container_log_config() for c in containers},
    }


class OdooConfigFragment(Fragment):
    """Configuration settable at role and role group level."""

    resources: Optional[ResourcesFragment] = None
    logging: Optional[LoggingFragment] = None
    affinity: Optional[AffinityFragment] = None

    def with_legacy_selector(self, selector: dict) -> "OdooConfigFragment":
        affinity = (self.affinity or AffinityFragment()).add_legacy_selector(selector)
        return self.model_copy(update={"affinity": affinity})


class OdooConfig(BaseModel):
    """Fully resolved configuration of one role group."""

    resources: Resources
    logging: Logging
    affinity: Affinity


_DEFAULT_RESOURCES = {
    OdooRole.WORKER: ("200m", "800m", "1750Mi"),
    OdooRole.WEBSERVER: ("100m", "400m", "2Gi"),
    OdooRole.SCHEDULER: ("100m", "400m", "512Mi"),
}


def default_config(cluster_name: str, role: OdooRole) -> OdooConfigFragment:
    """Operator defaults for a role, the lowest merge layer."""
    return OdooConfigFragment(
        resources=resources(*_DEFAULT_RESOURCES[role]),
        logging=LoggingFragment(**default_logging(Container)),
        affinity=default_affinity(cluster_name, role),
    )
