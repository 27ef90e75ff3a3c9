"""API endpoints for price quotes."""
from decimal import Decimal

from fastapi import APIRouter, Query

from jelantah.api.deps import DB, CurrentUser
from jelantah.schemas.pricing import PriceQuoteResponse
from jelantah.services.pricing_service import PricingEngine, to_currency

router = APIRouter()


@router.get("/quote", response_model=PriceQuoteResponse)
async def get_price_quote(
    db: DB,
    current_user: CurrentUser,
    volume: Decimal = Query(..., gt=0, description="Volume in liters"),
):
    """Estimate payout and commissions for a volume at current settings."""
    engine = await PricingEngine.load(db)
    quote = engine.quote(volume)
    return PriceQuoteResponse(
        volume=quote.volume,
        price_per_liter=to_currency(quote.price_per_liter),
        total_price=to_currency(quote.total_price),
        courier_commission=to_currency(quote.courier_commission),
        affiliate_commission=to_currency(quote.affiliate_commission),
    )
