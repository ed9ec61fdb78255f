"""
Club operation errors with user-facing messages.

Every rejected operation raises one of these with a specific reason; the
Discord layer shows ``user_message`` as-is, so it must say what to do next.
"""


class PatotaError(Exception):
    """Base exception for club operations."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(PatotaError):
    """Bad input shape or range."""
    def __init__(self, reason: str):
        super().__init__(f"Validation failed: {reason}", f"❌ {reason}")


class NotFoundError(PatotaError):
    """A referenced member, event, due, fine or payment does not exist."""
    def __init__(self, entity: str, identifier=None, hint: str = None):
        label = f"{entity} {identifier}" if identifier is not None else entity
        user_message = f"❌ {label} not found."
        if hint:
            user_message += f" {hint}"
        super().__init__(f"{label} not found", user_message)
        self.entity = entity
        self.identifier = identifier


class Forbidden(PatotaError):
    """The caller lacks the role required for the action."""
    def __init__(self, action: str, reason: str = None):
        super().__init__(
            f"Forbidden: {action}",
            f"❌ {reason or f'Only club admins can {action}.'}"
        )
        self.action = action


class Conflict(PatotaError):
    """The operation clashes with the current state (duplicates, closed windows)."""
    def __init__(self, reason: str):
        super().__init__(f"Conflict: {reason}", f"❌ {reason}")


class StoreError(PatotaError):
    """The relational store was unreachable or rejected a write."""
    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            f"❌ Could not {operation}: the database rejected the change. Nothing was saved, please try again."
        )
        self.operation = operation


class InsufficientPlayers(ValidationError):
    def __init__(self, confirmed: int, required: int):
        super().__init__(
            f"At least {required} confirmed players are needed to draw teams ({confirmed} confirmed)."
        )
        self.confirmed = confirmed
        self.required = required


class AlreadyDrawn(Conflict):
    def __init__(self, event_id: int):
        super().__init__(
            f"Teams for event {event_id} are already drawn. Reset the teams before drawing again."
        )


class TeamsNotDrawn(Conflict):
    def __init__(self, event_id: int):
        super().__init__(
            f"Teams for event {event_id} have not been drawn yet. Draw the teams before posting a score."
        )


class ScoreAlreadyFinalized(Conflict):
    def __init__(self, event_id: int):
        super().__init__(
            f"The score for event {event_id} is already registered. Use the edit score command to change it."
        )


class ConfirmationsClosed(Conflict):
    def __init__(self, event_id: int):
        super().__init__(
            f"Confirmations for event {event_id} are closed."
        )


class PaymentAlreadyConfirmed(Conflict):
    def __init__(self, payment_id: int):
        super().__init__(f"Payment {payment_id} was already confirmed.")
