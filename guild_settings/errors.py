from __future__ import annotations


__all__ = (
    "InvalidActionError",
    "InvalidKeyError",
    "InvalidOptionError",
    "KeyExistsError",
    "KeyNotFoundError",
    "KeyTypeMismatchError",
    "PropagationError",
    "SchemaDefinitionError",
    "SchemaError",
    "SchemaMutationError",
    "UnsupportedOperationError",
    "UnsupportedTypeError",
)


class SchemaError(Exception):
    """Base class for every error raised by the settings schema."""


class SchemaDefinitionError(SchemaError, TypeError):
    """Raised when a key is constructed from options breaking its invariants."""

    def __init__(self, path: str, parameter: str, problem: str) -> None:
        self.path = path
        self.parameter = parameter
        self.problem = problem
        super().__init__(f"[KEY] {path} - Parameter {parameter} {problem}")


class SchemaMutationError(SchemaError, ValueError):
    """
    Raised when a structural change is refused before anything was modified.

    Attributes:
        `key` -- name of the child the mutation targeted
    """

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)


class KeyExistsError(SchemaMutationError):
    def __init__(self, key: str) -> None:
        super().__init__(key, f"The key {key} already exists in the current schema.")


class KeyNotFoundError(SchemaMutationError):
    def __init__(self, key: str) -> None:
        super().__init__(key, f"The key {key} does not exist in the current schema.")


class KeyTypeMismatchError(SchemaMutationError):
    """Raised when a folder is targeted by a key operation, or a key by a folder operation."""

    def __init__(self, key: str, expected: str) -> None:
        self.expected = expected
        super().__init__(key, f"The key {key} is not {expected} type.")


class InvalidKeyError(SchemaMutationError):
    """Raised for names which cannot identify a child, such as dotted or reserved names."""


class InvalidOptionError(SchemaMutationError):
    """Raised when the options passed to `add_key` are malformed."""

    def __init__(self, key: str, parameter: str, message: str) -> None:
        self.parameter = parameter
        super().__init__(key, message)


class UnsupportedTypeError(SchemaMutationError):
    def __init__(self, key: str, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(key, f"The type {type_name} is not supported.")


class InvalidActionError(SchemaError, ValueError):
    def __init__(self, action: object, allowed: tuple[str, ...]) -> None:
        self.action = action
        choices = ", ".join(repr(a) for a in allowed)
        super().__init__(f"Action must be one of {choices}. Got: {action!r}")


class PropagationError(SchemaError):
    """
    Raised when the storage provider fails to rewrite stored records after a schema change.

    The schema file and the in-memory tree already hold the change when this is raised,
    so stored records lag behind the schema until the change is propagated again.
    The provider's exception is available as `__cause__`.

    Attributes:
        `action` -- the propagation action, "add", "edit" or "delete"
        `path` -- dotted path of the key being propagated
    """

    def __init__(self, action: str, path: str) -> None:
        self.action = action
        self.path = path
        super().__init__(f"Could not {action} the key {path} on the stored entries.")


class UnsupportedOperationError(SchemaError, NotImplementedError):
    """Raised when propagating a whole folder to stored entries, which has no defined behaviour yet."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} is not supported.")
