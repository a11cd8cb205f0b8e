"""Exception types shared across the service desk."""


class AIServiceError(Exception):
    """The AI text service failed, timed out, or is not configured."""


class AIResponseError(Exception):
    """The AI reply held no usable JSON object for the expected schema."""


class TicketValidationError(ValueError):
    """A ticket creation request is missing a field or has a malformed one."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidStatusTransitionError(Exception):
    """Raised when a ticket status change is not allowed."""


class TicketStoreError(Exception):
    """The ticket store is unavailable or rejected the operation."""


class ConcurrentUpdateError(TicketStoreError):
    """A versioned write lost the race against another writer."""

    def __init__(self, ticket_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Ticket {ticket_id} is at version {actual}, expected {expected}"
        )
        self.ticket_id = ticket_id
        self.expected = expected
        self.actual = actual


class TicketNotFoundError(TicketStoreError):
    """No ticket exists with the given id or number."""
