"""Errors raised by the account and post layers."""


class ValidationError(ValueError):
    """
    One or more fields were rejected.  ``errors`` maps field → message;
    the form can be fixed and sent again.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k} {v}" for k, v in self.errors.items()))

    def messages(self) -> list[str]:
        return [f"{k.capitalize()} {v}" for k, v in self.errors.items()]


class PostNotFound(LookupError):
    """No such post – or one that belongs to somebody else.  Same thing."""
