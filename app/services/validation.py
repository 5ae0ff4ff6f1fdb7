class FieldValidationError(ValueError):
    """Form-level rejection carrying one message per offending field."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors
