"""Post domain schemas - Pydantic models for unlock and deal toggle"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_choice
from ..deals.projection import TOGGLE_STATUSES


class DealToggleUpdate(BaseModel):
    """Schema for the post owner's manual deal outcome"""

    dealToggleStatus: str

    @field_validator("dealToggleStatus")
    @classmethod
    def validate_toggle(cls, v):
        return validate_choice(v, TOGGLE_STATUSES, "deal toggle status")


class AuthorContact(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    countryCode: Optional[str] = None
    companyName: Optional[str] = None
    designation: Optional[str] = None


class UnlockResponse(BaseModel):
    success: bool = True
    message: str
    postId: int
    dealId: Optional[str] = None
    contactCount: int
    unlockCredits: int
    credits: int
    author: AuthorContact


class DealToggleResponse(BaseModel):
    success: bool = True
    message: str
    dealToggleStatus: str
    dealResult: str
    resolvedDeals: list[str] = []
