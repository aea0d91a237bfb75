"""Shipping API."""

from fastapi import APIRouter, Depends, HTTPException

from cactilia.schemas import (
    CartTotalsOut,
    CartTotalsRequest,
    OptionGroupOut,
    RuleValidationOut,
    RuleValidationRequest,
    ShippingOptionsOut,
    ShippingRequest,
)
from cactilia.services.cart_totals import calculate_cart_totals
from cactilia.services.coverage import get_coverage_type, validate_shipping_rule
from cactilia.services.normalize import ShippingRule, normalize_cart
from cactilia.services.option_groups import group_shipping_options
from cactilia.services.rule_catalog import RuleCatalogError
from cactilia.services.shipping import ShippingService, shipping_service

router = APIRouter(prefix="/shipping", tags=["shipping"])


def get_shipping_service() -> ShippingService:
    return shipping_service


async def _options(data: ShippingRequest, service: ShippingService):
    try:
        return await service.get_shipping_options(data.items, data.address, data.use_greedy)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except RuleCatalogError as e:
        raise HTTPException(503, str(e))


@router.post("/options", response_model=ShippingOptionsOut)
async def shipping_options(
    data: ShippingRequest,
    service: ShippingService = Depends(get_shipping_service),
):
    options = await _options(data, service)
    return {
        "options": [o.to_dict() for o in options],
        "coverage": service.get_coverage_summary(options, data.items),
    }


@router.post("/groups", response_model=list[OptionGroupOut])
async def shipping_groups(
    data: ShippingRequest,
    service: ShippingService = Depends(get_shipping_service),
):
    options = await _options(data, service)
    return [g.to_dict() for g in group_shipping_options(options)]


@router.post("/cart-totals", response_model=CartTotalsOut)
async def cart_totals(data: CartTotalsRequest):
    totals = calculate_cart_totals(
        normalize_cart(data.items),
        tax_rate=data.tax_rate,
        min_free_shipping=data.min_free_shipping,
        shipping_cost=data.shipping_cost,
    )
    return totals.to_dict()


@router.post("/rules/validate", response_model=RuleValidationOut)
async def validate_rule(data: RuleValidationRequest):
    rule = ShippingRule.from_dict(data.rule)
    valid, message = validate_shipping_rule(rule)
    return {"valid": valid, "message": message, "coverage_type": get_coverage_type(rule)}
