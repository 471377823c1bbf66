"""Exceptions raised by the Odoo operator.

Every error carries a ``context`` mapping (object reference, role group,
resource kind and name) that is rendered into its message so a failure can
be attributed without reading the traceback.
"""

from typing import Dict, List


class OperatorError(Exception):
    """Base class for all operator errors."""

    def __init__(self, message: str, **context: str):
        self.message = message
        self.context: Dict[str, str] = {k: str(v) for k, v in context.items()}
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class InvalidConfigError(OperatorError):
    """User supplied configuration cannot be turned into resources."""


class FragmentValidationError(InvalidConfigError):
    """A merged configuration fragment still misses required fields."""


class UnknownRoleError(InvalidConfigError):
    """A role name that the cluster does not define was requested."""


class ConfigFileError(InvalidConfigError):
    """A configuration file could not be rendered."""


class InvalidProductConfigError(InvalidConfigError):
    """A property violates the product configuration."""


class UnsupportedAuthenticationProviderError(InvalidConfigError):
    """The referenced AuthenticationClass uses a provider we cannot handle."""


class RoleGroupConfigError(InvalidConfigError):
    """One or more role groups failed to build."""

    def __init__(self, failures: List[OperatorError], **context: str):
        self.failures = failures
        summary = "; ".join(str(f) for f in failures)
        super().__init__(f"{len(failures)} role group(s) failed: {summary}", **context)


class DependencyNotReadyError(OperatorError):
    """A referenced object does not exist yet."""


class ExternalCallError(OperatorError):
    """A call to the Kubernetes API failed."""


class NotFoundError(ExternalCallError):
    """The requested object does not exist."""
