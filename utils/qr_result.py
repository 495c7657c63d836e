"""
utils/qr_result.py
────────────────────────────────────────────
Structured outcomes for the QR core.

Every public QR operation returns a ``QRResult``. Expected business failures
(not found, conflicts, inactive codes, …) carry a ``QRError`` with an explicit
``QRErrorKind`` so callers can match on the kind instead of parsing messages.
Unexpected exceptions are turned into ``server_error`` results by
``qr_boundary``.
────────────────────────────────────────────
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)


class QRErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    CONSTRAINT = "constraint"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    GENERATION_ERROR = "generation_error"
    SERVER_ERROR = "server_error"


# not_found and authorization both map to 404: never reveal foreign items
HTTP_STATUS_BY_KIND: Dict[QRErrorKind, int] = {
    QRErrorKind.VALIDATION: 400,
    QRErrorKind.CONSTRAINT: 409,
    QRErrorKind.INACTIVE: 409,
    QRErrorKind.AUTHORIZATION: 404,
    QRErrorKind.NOT_FOUND: 404,
    QRErrorKind.GENERATION_ERROR: 500,
    QRErrorKind.SERVER_ERROR: 500,
}


@dataclass(frozen=True)
class QRError:
    kind: QRErrorKind
    message: str
    code: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.code:
            payload["code"] = self.code
        if self.context:
            payload["context"] = self.context
        return payload


@dataclass
class QRResult:
    success: bool
    data: Any = None
    error: Optional[QRError] = None
    message: str = ""

    @classmethod
    def ok(cls, data: Any = None, message: str = "") -> "QRResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(
        cls,
        kind: QRErrorKind,
        message: str,
        code: Optional[str] = None,
        data: Any = None,
        **context: Any,
    ) -> "QRResult":
        return cls(
            success=False,
            data=data,
            error=QRError(kind=kind, message=message, code=code, context=context),
            message=message,
        )

    @property
    def kind(self) -> Optional[QRErrorKind]:
        return self.error.kind if self.error else None


class QRFailure(Exception):
    """Raised inside the core for expected failures; converted by qr_boundary."""

    def __init__(
        self,
        kind: QRErrorKind,
        message: str,
        code: Optional[str] = None,
        data: Any = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.data = data
        self.context = context

    def to_result(self) -> QRResult:
        return QRResult.fail(self.kind, self.message, code=self.code, data=self.data, **self.context)


def require_text(value: Any, message: str, code: Optional[str] = None, max_length: int = 255) -> str:
    """Returns the stripped string or raises a validation QRFailure."""
    if not isinstance(value, str) or not value.strip():
        raise QRFailure(QRErrorKind.VALIDATION, message, code=code)
    value = value.strip()
    if len(value) > max_length:
        raise QRFailure(QRErrorKind.VALIDATION, f"{message} ({max_length} characters max)", code=code)
    return value


F = TypeVar("F", bound=Callable[..., QRResult])


def qr_boundary(context: str) -> Callable[[F], F]:
    """
    Wraps a public core operation so it always returns a QRResult.
    Internal detail of unexpected errors is logged, never returned.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> QRResult:
            try:
                return func(*args, **kwargs)
            except QRFailure as failure:
                logger.info(f"ℹ️ {context}: {failure.kind.value} – {failure.message}")
                return failure.to_result()
            except Exception:
                logger.exception(f"❌ {context} failed unexpectedly")
                return QRResult.fail(
                    QRErrorKind.SERVER_ERROR,
                    f"{context} failed due to an internal error",
                    code="INTERNAL_ERROR",
                )

        return wrapper  # type: ignore[return-value]

    return decorator
