from .core import GitSource
from .models import ClonedRepo
from .utils import remote_url

from .exceptions import (
    GitExceptions,
    GitCloneError,
    GitCheckoutError,
)

__all__ = [
    "GitSource",
    "ClonedRepo",
    "remote_url",
    "GitExceptions",
    "GitCloneError",
    "GitCheckoutError",
]
