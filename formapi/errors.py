from dataclasses import asdict, dataclass
from typing import List


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    location: str = "body"

    def as_dict(self) -> dict:
        return asdict(self)


class RequestValidationFailed(Exception):
    """Raised by a request gate when its validator reported errors."""

    def __init__(self, errors: List[FieldError]):
        super().__init__(f"{len(errors)} validation error(s)")
        self.errors = errors


class StorageError(Exception):
    """The persistence layer failed; distinct from bad client input."""
