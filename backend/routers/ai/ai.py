from fastapi import APIRouter, Depends
from services.recommendations import AdvisoryService, get_recommendation_provider
from .schemas import RecommendationRequest, QualityCheckRequest, PriceNegotiationRequest
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI Advisory"])


def get_advisory_service() -> AdvisoryService:
    return AdvisoryService(get_recommendation_provider())


# Advisory endpoints never fail because of the AI provider: the service
# returns a payload with "available": false instead.

@router.post("/recommendations", response_model=Dict[str, Any])
async def get_recommendations(
    request: RecommendationRequest,
    advisor: AdvisoryService = Depends(get_advisory_service)
):
    """Supplier suggestions for a category near the vendor"""
    logger.info(f"AI recommendations requested by vendor {request.vendor_id} for {request.category}")
    return await advisor.get_smart_recommendations(
        request.vendor_id,
        request.category,
        {"lat": request.latitude, "lon": request.longitude},
        request.urgency
    )


@router.post("/quality-check", response_model=Dict[str, Any])
async def quality_check(
    request: QualityCheckRequest,
    advisor: AdvisoryService = Depends(get_advisory_service)
):
    """Score the freshness of produce from a photo"""
    return await advisor.analyze_quality(request.image_base64, request.product_type)


@router.post("/price-negotiation", response_model=Dict[str, Any])
async def price_negotiation(
    request: PriceNegotiationRequest,
    advisor: AdvisoryService = Depends(get_advisory_service)
):
    """Polite Hindi/English phrasing for a price counter-offer"""
    return await advisor.generate_price_negotiation(
        request.current_price,
        request.target_price,
        request.context or ""
    )
