from fastapi import HTTPException

from app.services.validation import FieldValidationError


def bad_request(exc: ValueError) -> HTTPException:
    """422 with per-field messages for form errors, plain 400 otherwise."""
    if isinstance(exc, FieldValidationError):
        return HTTPException(422, {"errors": exc.errors})
    return HTTPException(400, str(exc))
