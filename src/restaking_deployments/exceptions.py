"""Custom exception classes for restaking-deployments library."""

from typing import Any, Optional


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class ConfigurationError(DeploymentError, ValueError):
    """Raised when the deployment configuration is missing or invalid."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when no compiled artifact exists for a contract."""

    pass


class FunctionNotFoundError(DeploymentError, ValueError):
    """Raised when requested function is not found in contract ABI."""

    pass


class RegistryError(DeploymentError, KeyError):
    """Raised on unknown components or illegal address registry mutations."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class RpcError(DeploymentError, RuntimeError):
    """Raised when a JSON-RPC request fails or returns an error."""

    def __init__(self, message: str, code: Optional[int] = None, data: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.data = data


class TransactionError(DeploymentError, RuntimeError):
    """Raised when a contract creation or transaction reverts or fails to land."""

    def __init__(
        self,
        message: str,
        contract: Optional[str] = None,
        method: Optional[str] = None,
        reason: Optional[str] = None,
        component: Optional[str] = None,
    ):
        super().__init__(message)
        self.contract = contract
        self.method = method
        self.reason = reason
        self.component = component

    def __str__(self) -> str:
        message = super().__str__()
        if self.component is None:
            return message
        return f"{self.component}: {message}"

    def for_component(self, component: str) -> "TransactionError":
        """Attach the logical component being deployed, unless one is already set."""
        if self.component is None:
            self.component = component
        return self


class AlreadyInitializedError(TransactionError):
    """Raised when a one-time initializer is invoked a second time."""

    pass


class VerificationError(DeploymentError, AssertionError):
    """Raised when a deployed component does not match its expected state."""

    def __init__(self, component: str, field: str, expected: Any, actual: Any):
        super().__init__(
            f"Verification failed for {component}.{field}: "
            f"expected {expected!r}, got {actual!r}"
        )
        self.component = component
        self.field = field
        self.expected = expected
        self.actual = actual


class ManifestError(DeploymentError, ValueError):
    """Raised when a manifest cannot be produced or parsed."""

    pass
