from pydantic import BaseModel, Field
from typing import Optional, Literal


class RecommendationRequest(BaseModel):
    vendor_id: str
    category: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    urgency: Literal["low", "medium", "high"] = "medium"


class QualityCheckRequest(BaseModel):
    image_base64: str = Field(..., min_length=1, description="Base64-encoded JPEG of the produce")
    product_type: str = Field(..., min_length=1)


class PriceNegotiationRequest(BaseModel):
    current_price: float = Field(..., gt=0)
    target_price: float = Field(..., gt=0)
    context: Optional[str] = ""
