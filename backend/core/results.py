"""
Explicit result values returned by every service operation.

Services never keep loading/error flags; callers receive an OperationResult
and decide how to present it.
"""
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from django.db import DatabaseError
from mongoengine.errors import OperationError
from pymongo.errors import PyMongoError

from .errors import (
    IneligibleOperationError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = 'VALIDATION'
    NOT_FOUND = 'NOT_FOUND'
    INELIGIBLE = 'INELIGIBLE'
    STORE_UNAVAILABLE = 'STORE_UNAVAILABLE'


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a service operation: either a value or a classified error."""
    value: Any = None
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None
    message: str = ''

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, value: Any = None) -> 'OperationResult':
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, reason: Optional[str] = None) -> 'OperationResult':
        return cls(error_kind=kind, reason=reason, message=message)

    @classmethod
    def ineligible(cls, reason: str, message: str = '') -> 'OperationResult':
        return cls.failure(ErrorKind.INELIGIBLE, message or reason, reason)


def guarded(operation: str):
    """
    Wraps a service method so domain exceptions and store failures come back
    as failed OperationResults. Plain return values are wrapped in success().
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                result = func(*args, **kwargs)
            except NotFoundError as e:
                return OperationResult.failure(ErrorKind.NOT_FOUND, e.message, e.reason)
            except ValidationError as e:
                return OperationResult.failure(ErrorKind.VALIDATION, e.message, e.reason)
            except IneligibleOperationError as e:
                return OperationResult.failure(ErrorKind.INELIGIBLE, e.message, e.reason)
            except StoreUnavailableError as e:
                logger.error(f"{operation} failed: store unavailable: {e.message}")
                return OperationResult.failure(ErrorKind.STORE_UNAVAILABLE, e.message, e.reason)
            except (DatabaseError, OperationError, PyMongoError) as e:
                logger.error(f"{operation} failed: store unavailable: {str(e)}")
                return OperationResult.failure(ErrorKind.STORE_UNAVAILABLE, 'Store unavailable, try again later')
            if isinstance(result, OperationResult):
                return result
            return OperationResult.success(result)
        return wrapper
    return decorator
