class ProjectFlowError(Exception):
    """Base exception for ProjectFlow."""

    pass


class ValidationError(ProjectFlowError):
    """Raised when a required field is missing or a value is malformed.

    Raised before any state is touched.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(ProjectFlowError):
    """Raised by callers of the store when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class ExternalCallFailure(ProjectFlowError):
    """Raised when an AI planner call is rejected, times out or returns garbage."""

    pass


class PersistenceFailure(ExternalCallFailure):
    """Raised when the blob store read or write fails. Not retried."""

    pass


class OrderingInvariantError(ProjectFlowError):
    """Raised when a collection violates dense per-group ordering."""

    def __init__(self, group: str, orders: list[int]):
        self.group = group
        self.orders = orders
        super().__init__(f"Orders for group '{group}' are not dense: {orders}")
