"""Error taxonomy shared by every workflow.

Four families, all Protean exceptions carrying a ``{field: [messages]}`` dict:

* ``ValidationError``        - malformed or missing input
* ``InvalidOperationError``  - operation not allowed from the current status
* ``ObjectNotFoundError``    - referenced record missing or owned by another tenant
* ``InvariantViolationError`` - the write would break a stock or quantity invariant
"""

from protean.exceptions import (
    ExpectedVersionError,
    InvalidOperationError,
    ObjectNotFoundError,
    ValidationError,
)


class InvariantViolationError(ValidationError):
    """Refusal to write a state that breaks a data invariant (negative stock, over-receipt)."""


def state_error(message: str) -> InvalidOperationError:
    return InvalidOperationError({"status": [message]})


def not_found(field: str, message: str) -> ObjectNotFoundError:
    return ObjectNotFoundError({field: [message]})


def error_category(exc: Exception) -> str:
    """Name the taxonomy family of a workflow exception."""
    # Subclass first: an invariant violation is also a ValidationError
    if isinstance(exc, InvariantViolationError):
        return "invariant"
    if isinstance(exc, ValidationError):
        return "validation"
    if isinstance(exc, InvalidOperationError):
        return "state"
    if isinstance(exc, ObjectNotFoundError):
        return "not_found"
    if isinstance(exc, ExpectedVersionError):
        return "conflict"
    return "error"


def error_messages(exc: Exception) -> dict:
    """Return the ``{field: [messages]}`` payload of a Protean exception."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    if messages:
        return {"_entity": [str(messages)]}
    return {"_entity": [str(exc)]}


def first_message(exc: Exception) -> str:
    for value in error_messages(exc).values():
        if isinstance(value, list | tuple) and value:
            return str(value[0])
        if value:
            return str(value)
    return str(exc)
