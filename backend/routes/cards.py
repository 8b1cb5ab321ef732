"""
Cards routes: dashboard card values.
"""

import logging

from fastapi import APIRouter, HTTPException

from core.cards import Calculator, compute_card
from core.parser import parse_custom_average
from routes.common import periods_from_payload, sanitize, subjects_from_payload

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/")
async def calculators():
    """Available calculator names."""
    return {"calculators": [c.value for c in Calculator]}


@router.post("/{calculator}")
async def card(calculator: str, payload: dict):
    """
    Compute one card.
    Expects: { "subjects": [...], "params": {...}, "custom_averages": [...], "periods": [...] }
    """
    subjects = subjects_from_payload(payload)
    periods = periods_from_payload(payload)

    try:
        custom_averages = [parse_custom_average(ca) for ca in payload.get("custom_averages") or []]
        result = compute_card(
            calculator, subjects, payload.get("params") or {}, custom_averages, periods
        )
    except ValueError as exc:
        logger.warning("Rejected card request %s: %s", calculator, exc)
        raise HTTPException(400, str(exc))

    return sanitize(result)
