"""
IO utilities for the calculation request boundary.
Parses text form fields into requests, dispatches on calculation type,
and formats results for display and CSV export.
"""
import json
import logging
import math
from typing import Dict, Any, Optional, Tuple

import pandas as pd

from donation import (
    SavingsRequest, TargetingRequest, estimate_savings, recommend_donation
)
from errors import CalculationError, InvalidInputError, MalformedNumberError
from tax import bracket_breakdown, parse_filing_status

logger = logging.getLogger(__name__)

ESTIMATE_SAVINGS = "estimate_savings"
EVALUATE_DONATION = "evaluate_donation"

GENERIC_FAILURE_MESSAGE = "Failed to process calculation"


def parse_amount(data: Dict[str, Any], field: str,
                 required: bool = True,
                 default: Optional[float] = None) -> Optional[float]:
    """
    Parse a decimal-formatted text field into a float.

    Blank or missing optional fields return the default.

    Raises:
        InvalidInputError: if a required field is missing or the value is negative
        MalformedNumberError: if the text is not a finite number
    """
    value = data.get(field)

    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise InvalidInputError(f"Missing required field: {field}")
        return default

    if isinstance(value, bool):
        raise MalformedNumberError(field, value)

    try:
        amount = float(value.strip()) if isinstance(value, str) else float(value)
    except (ValueError, TypeError):
        raise MalformedNumberError(field, value) from None

    if not math.isfinite(amount):
        raise MalformedNumberError(field, value)

    if amount < 0:
        raise InvalidInputError(f"{field} must not be negative")

    return amount


def _parse_status(data: Dict[str, Any]):
    status = data.get('filingStatus')
    if not status:
        raise InvalidInputError("Missing required field: filingStatus")
    return parse_filing_status(status)


def parse_savings_request(data: Dict[str, Any]) -> SavingsRequest:
    """Build a SavingsRequest from camelCase form data"""
    return SavingsRequest(
        annual_income=parse_amount(data, 'annualIncome'),
        donation_amount=parse_amount(data, 'donationAmount'),
        filing_status=_parse_status(data),
        current_tax_rate=parse_amount(data, 'currentTaxRate', required=False),
    )


def parse_targeting_request(data: Dict[str, Any]) -> TargetingRequest:
    """Build a TargetingRequest from camelCase form data"""
    return TargetingRequest(
        target_tax_savings=parse_amount(data, 'targetTaxSavings'),
        annual_income=parse_amount(data, 'annualIncome'),
        filing_status=_parse_status(data),
        current_deductions=parse_amount(data, 'currentDeductions', required=False, default=0.0),
    )


def handle_calculation_request(payload: Any) -> Tuple[int, Dict[str, Any]]:
    """
    Dispatch a calculation request.

    Args:
        payload: {"type": "estimate_savings" | "evaluate_donation", "data": {...}}

    Returns:
        (status_code, response_body)
    """
    try:
        calc_type = payload.get('type') if isinstance(payload, dict) else None
        data = payload.get('data') if isinstance(payload, dict) else None

        if not calc_type or not isinstance(data, dict):
            return 400, {'error': "Type and data are required"}

        if calc_type == ESTIMATE_SAVINGS:
            result = estimate_savings(parse_savings_request(data))
        elif calc_type == EVALUATE_DONATION:
            result = recommend_donation(parse_targeting_request(data))
        else:
            return 400, {'error': "Invalid calculation type"}

        return 200, result.to_dict()

    except CalculationError as e:
        logger.info("Rejected calculation input: %s", e)
        return 400, {'error': str(e)}
    except Exception:
        logger.exception("Calculation error")
        return 500, {'error': GENERIC_FAILURE_MESSAGE}


def handle_calculation_json(body: str) -> Tuple[int, str]:
    """JSON-in, JSON-out wrapper around handle_calculation_request"""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return 400, json.dumps({'error': "Request body must be valid JSON"})

    status, response = handle_calculation_request(payload)
    return status, json.dumps(response)


def export_breakdown_csv(annual_income: float, donation_amount: float, filing_status: str) -> str:
    """
    Export the per-bracket tax before and after a donation to CSV.

    Returns:
        CSV string with one row per bracket
    """
    before = bracket_breakdown(annual_income, filing_status)
    after = bracket_breakdown(max(annual_income - donation_amount, 0.0), filing_status)

    df = pd.DataFrame({
        'Lower Bound': before['lower_bound'],
        'Upper Bound': before['upper_bound'],
        'Rate': before['rate'],
        'Taxable Without Donation': before['taxable_amount'].round(2),
        'Tax Without Donation': before['tax'].round(2),
        'Taxable With Donation': after['taxable_amount'].round(2),
        'Tax With Donation': after['tax'].round(2),
    })
    df['Savings'] = (df['Tax Without Donation'] - df['Tax With Donation']).round(2)

    return df.to_csv(index=False)


def format_currency(value: Optional[float], precision: int = 0) -> str:
    """
    Format currency values for compact display.

    Args:
        value: Numeric value to format
        precision: Number of decimal places

    Returns:
        Formatted string such as $12K or $1.2M
    """
    if value is None:
        return "N/A"

    if abs(value) >= 1_000_000:
        return f"${value/1_000_000:.{precision}f}M"
    elif abs(value) >= 1_000:
        return f"${value/1_000:.{precision}f}K"
    return f"${value:.{precision}f}"
