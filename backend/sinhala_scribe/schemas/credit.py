from typing import Optional

from pydantic import Field

from sinhala_scribe.schemas.base import CamelModel


class CreditPackage(CamelModel):
    """Credit package schema"""
    id: str = Field(..., description="Package identifier")
    name: str = Field(..., description="Package name")
    credits: int = Field(..., gt=0, description="Number of credits in package")
    price: float = Field(..., gt=0, description="Price in USD")
    popular: bool = Field(False, description="Highlighted package")


class CreditBalance(CamelModel):
    """Current credit balance"""
    credits: int = Field(..., ge=0)


class DeductCreditResult(CamelModel):
    """Outcome of an atomic single-credit deduction"""
    success: bool
    remaining_credits: int
    error_message: Optional[str] = None
