"""Tagged success/failure values returned across component boundaries."""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar('T')


class ErrorKind(str, Enum):
    """Categories of checked failures."""
    QUERY_FAILED = 'query_failed'
    INVALID = 'invalid'
    NOT_FOUND = 'not_found'
    CLOSED = 'closed'
    UNAUTHORIZED = 'unauthorized'


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying its value."""
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying an error kind and a user-facing message."""
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]


def query_failed(message: str) -> Failure:
    return Failure(ErrorKind.QUERY_FAILED, message)
