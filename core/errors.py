from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVOICE_ID_EXHAUSTED = "INVOICE_ID_EXHAUSTED"
    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"
    STORE_READ_FAILED = "STORE_READ_FAILED"
    CALLBACK_REJECTED = "CALLBACK_REJECTED"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        self.code = code
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class GenerationExhausted(AppException):
    def __init__(self, *, attempts: int) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.INVOICE_ID_EXHAUSTED,
            message="Could not allocate a unique invoice id",
            details={"attempts": attempts},
        )


class StoreWriteFailure(AppException):
    def __init__(self, *, operation: str, details: Any | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Invoice store write failed: {operation}",
            details=details,
        )


class StoreReadFailure(AppException):
    def __init__(self, *, operation: str, details: Any | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.STORE_READ_FAILED,
            message=f"Invoice store read failed: {operation}",
            details=details,
        )


class DuplicateInvoiceId(Exception):
    """Raised by an invoice store when the generated id is already taken."""

    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice id already exists: {invoice_id}")


def validation_failed(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=422,
        code=ErrorCode.VALIDATION_FAILED,
        message=message,
        details=details,
    )


def callback_rejected(reason: str, invoice_id: str | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.CALLBACK_REJECTED,
        message="Payment callback rejected",
        details={"reason": reason, "invoice_id": invoice_id},
    )


def resource_not_found(resource: str, resource_id: str | None = None) -> AppException:
    details = {"resource": resource}
    if resource_id:
        details["resource_id"] = resource_id
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )
