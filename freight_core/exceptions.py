"""
Typed exceptions for the freight core.

Callers catch by type, never by message. Every exception carries
a machine-readable ``code`` and the structured data that caused it,
so the HTTP layer and the logs never have to parse strings.

    FreightCoreError
    +-- NotFoundError
    +-- InvalidStateError
    +-- ResourceBusyError
    +-- AlreadyExistsError
    +-- UnitMismatchError
    +-- InvalidAmountError
    +-- ConflictError
    +-- InvalidRequestError
    +-- PermissionDeniedError
"""


class FreightCoreError(Exception):
    """Base class for every failure the core reports."""

    code: str = "FREIGHT_CORE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(FreightCoreError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(FreightCoreError):
    """The operation is not valid for the current lifecycle phase."""

    code = "INVALID_STATE"

    def __init__(self, message: str, current_status=None):
        self.current_status = current_status
        super().__init__(message)


class ResourceBusyError(FreightCoreError):
    """A driver or truck is already bound to another active trip."""

    code = "RESOURCE_BUSY"

    def __init__(self, resource: str, resource_id: int, conflicting_trip_id: int):
        self.resource = resource
        self.resource_id = resource_id
        self.conflicting_trip_id = conflicting_trip_id
        super().__init__(
            f"{resource.capitalize()} {resource_id} is already assigned "
            f"to active trip {conflicting_trip_id}"
        )


class AlreadyExistsError(FreightCoreError):
    """A document that may only be created once already exists."""

    code = "ALREADY_EXISTS"


class UnitMismatchError(FreightCoreError):
    """A receive line's unit differs from its load line's unit."""

    code = "UNIT_MISMATCH"

    def __init__(self, load_item_id: int, loaded_unit, received_unit):
        self.load_item_id = load_item_id
        self.loaded_unit = loaded_unit
        self.received_unit = received_unit
        super().__init__(
            f"Load item {load_item_id} was loaded in {loaded_unit.value}, "
            f"received in {received_unit.value}"
        )


class InvalidAmountError(FreightCoreError):
    """A monetary value is non-positive or finer than one minor unit."""

    code = "INVALID_AMOUNT"

    def __init__(self, message: str, amount=None):
        self.amount = amount
        super().__init__(message)


class ConflictError(FreightCoreError):
    """The store rejected the write, or transient conflicts persisted."""

    code = "CONFLICT"


class InvalidRequestError(FreightCoreError):
    """The request is well-formed but violates a business rule."""

    code = "INVALID_REQUEST"


class PermissionDeniedError(FreightCoreError):
    """The acting user is not allowed to perform the operation."""

    code = "PERMISSION_DENIED"
