"""Error taxonomy shared by the catalog, vault and resolver."""

from __future__ import annotations


class McpToolkitError(RuntimeError):
    """Base class for every failure raised by the toolkit core."""


class ParseError(McpToolkitError):
    """Raised when configuration text is not valid JSON."""


class InputTooLarge(McpToolkitError):
    """Raised when an import payload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"import payload is {size} bytes; limit is {limit} bytes")
        self.size = size
        self.limit = limit


class InvalidConfig(McpToolkitError):
    """Raised when a server entry cannot be turned into a descriptor."""


class ValidationError(McpToolkitError, ValueError):
    """Raised when a direct create/update receives an empty or malformed field."""


class StorageError(McpToolkitError):
    """Raised when persisted state cannot be read back."""


class MasterKeyError(McpToolkitError):
    """Raised when the master key provider cannot supply a usable key."""


class SecretNotFound(McpToolkitError):
    """Raised when no secret exists under the requested key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"secret '{key}' not found")
        self.key = key


class DecryptionFailure(McpToolkitError):
    """Raised when stored ciphertext fails authentication."""

    def __init__(self, key: str) -> None:
        super().__init__(f"secret '{key}' failed authentication; stored data is corrupt or the master key changed")
        self.key = key


class UnresolvedSecretReference(McpToolkitError):
    """Raised when an override references a secret that does not exist."""

    def __init__(self, key: str, secret_key: str) -> None:
        super().__init__(f"override '{key}' references missing secret '{secret_key}'")
        self.key = key
        self.secret_key = secret_key


class DescriptorNotFound(McpToolkitError):
    """Raised when a descriptor id or name is unknown to the catalog."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"MCP server '{reference}' not found")
        self.reference = reference


class DuplicateDescriptor(McpToolkitError):
    """Raised when a descriptor name is already taken in the catalog."""

    def __init__(self, name: str) -> None:
        super().__init__(f"MCP server '{name}' already exists")
        self.name = name


class ProjectNotFound(McpToolkitError):
    """Raised when a project id is unknown."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"project '{project_id}' not found")
        self.project_id = project_id


class BindingNotFound(McpToolkitError):
    """Raised when a project has no binding for the requested server."""

    def __init__(self, project_id: str, mcp_id: str) -> None:
        super().__init__(f"no binding for project '{project_id}' and MCP server '{mcp_id}'")
        self.project_id = project_id
        self.mcp_id = mcp_id


class DuplicateBinding(McpToolkitError):
    """Raised when a second binding is created for the same project and server."""

    def __init__(self, project_id: str, mcp_id: str) -> None:
        super().__init__(f"project '{project_id}' already has a binding for MCP server '{mcp_id}'")
        self.project_id = project_id
        self.mcp_id = mcp_id


__all__ = [
    "BindingNotFound",
    "DecryptionFailure",
    "DescriptorNotFound",
    "DuplicateBinding",
    "DuplicateDescriptor",
    "InputTooLarge",
    "InvalidConfig",
    "MasterKeyError",
    "McpToolkitError",
    "ParseError",
    "ProjectNotFound",
    "SecretNotFound",
    "StorageError",
    "UnresolvedSecretReference",
    "ValidationError",
]
