class CrmError(Exception):
    """Base class for all CRM domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except CrmError`` clause can catch any domain error.  The
    five direct subclasses below are the error taxonomy the HTTP layer
    maps onto status codes.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(CrmError):
    """A referenced entity does not exist."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail)


class ConflictError(CrmError):
    """A business rule rejected the operation."""

    def __init__(self, detail: str = "Conflicting operation"):
        super().__init__(detail)


class UnauthorizedError(CrmError):
    """Missing actor or bad shared secret."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail)


class ExternalServiceError(CrmError):
    """A third-party API answered non-2xx or with an error payload."""

    def __init__(self, detail: str = "External service error"):
        super().__init__(detail)


class ValidationError(CrmError):
    """Malformed or incomplete input."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(detail)


class LeadNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Lead not found"):
        super().__init__(detail)


class BorrowerNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Borrower not found"):
        super().__init__(detail)


class AgentNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Agent not found"):
        super().__init__(detail)


class AppointmentNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Appointment not found"):
        super().__init__(detail)


class TimeslotNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Timeslot not found"):
        super().__init__(detail)


class PlaybookNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Playbook not found"):
        super().__init__(detail)


class ActiveAppointmentExistsError(ConflictError):
    """Raised when a lead or borrower already has an upcoming appointment."""

    def __init__(self, detail: str = "Already has an upcoming appointment"):
        super().__init__(detail)


class AppointmentNotActiveError(ConflictError):
    """Raised when the slots of a settled or cancelled appointment are changed."""

    def __init__(self, detail: str = "Appointment is no longer active"):
        super().__init__(detail)


class TimeslotFullError(ConflictError):
    """Raised when a timeslot has no remaining capacity or is disabled."""

    def __init__(self, detail: str = "Timeslot is fully booked"):
        super().__init__(detail)


class InvalidStatusTransitionError(ValidationError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, detail: str = "Invalid status transition"):
        super().__init__(detail)


class CustomReasonRequiredError(ValidationError):
    """Raised when a reason that needs free text is submitted without it."""

    def __init__(self, detail: str = "Please provide a custom reason"):
        super().__init__(detail)
