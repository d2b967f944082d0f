"""Error taxonomy shared by the services, storage backends and request layer."""


class FilmorateError(Exception):
    """Base class for all errors raised by the filmorate core."""


class NotFoundError(FilmorateError):
    """A referenced entity id does not exist."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")


class InvalidStateError(FilmorateError):
    """Relationship state does not allow the requested operation."""


class ValidationError(FilmorateError):
    """Input violates a field-level invariant."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class StorageError(FilmorateError):
    """The persistence backend reported an unexpected fault."""
