"""
Pydantic schemas for driver payment operations.
"""

from pydantic import BaseModel, Field


class DriverPaymentRecord(BaseModel):
    """An amount handed to the driver, in minor units."""
    amount: int = Field(gt=0)
    remarks: str | None = Field(default=None, max_length=255)
