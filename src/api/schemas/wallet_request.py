"""Request schemas for Wallet API

Pydantic models for validating incoming HTTP requests.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class TopUpRequestSchema(BaseModel):
    """
    Request schema for initiating a wallet top-up

    Used for POST /wallet/topup endpoint.
    """

    amount: int = Field(
        ...,
        gt=0,
        description="Amount to add in minor units (must be > 0)"
    )

    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="ISO currency code (defaults to the service currency)"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v):
        return v.upper() if v else v

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 5000,
                "currency": "NGN"
            }
        }


class DeductRequestSchema(BaseModel):
    """
    Request schema for deducting from the wallet

    Used for POST /wallet/deduct endpoint. course_id and instructor_id
    go together: the instructor is credited the same amount.
    """

    amount: int = Field(
        ...,
        gt=0,
        description="Amount to deduct in minor units (must be > 0)"
    )

    description: str = Field(
        default="Wallet deduction",
        min_length=1,
        max_length=255,
        description="Human-readable reason shown in the transaction history"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Unique key; a repeated request returns the original transaction"
    )

    course_id: Optional[str] = Field(
        default=None,
        description="Paid course being purchased"
    )

    instructor_id: Optional[str] = Field(
        default=None,
        description="Instructor credited for the course"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 1500,
                "description": "Enrollment: Intro to Python",
                "idempotency_key": "enroll:course_42:user_7",
                "course_id": "course_42",
                "instructor_id": "user_3"
            }
        }
