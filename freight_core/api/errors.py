"""
HTTP mapping for core errors.

The services raise typed FreightCoreError subclasses; this table
is the one place their codes become HTTP status codes.
"""

from fastapi import HTTPException

from freight_core.exceptions import FreightCoreError

STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "INVALID_STATE": 409,
    "RESOURCE_BUSY": 409,
    "ALREADY_EXISTS": 409,
    "CONFLICT": 409,
    "UNIT_MISMATCH": 422,
    "INVALID_AMOUNT": 422,
    "INVALID_REQUEST": 400,
    "PERMISSION_DENIED": 403,
}


def http_error(error: FreightCoreError) -> HTTPException:
    """Translate a core error into an HTTPException to raise."""
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 500),
        detail={"code": error.code, "message": error.message},
    )
