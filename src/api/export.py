"""
Data export endpoints (CSV).
"""

import csv
import io
import logging
from datetime import datetime
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from src.core.opportunity import ArbitrageOpportunity
from .dependencies import get_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Export"])

PRICE_CSV_HEADERS = ["Exchange", "Price", "Bid", "Ask", "Timestamp", "Created_At"]


def generate_csv(headers: List[str], rows: List[List[Any]]) -> str:
    """Generate CSV string from headers and rows"""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def _cell(value: Any) -> Any:
    """Absent values become empty cells, datetimes ISO strings"""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export-csv")
def export_prices_csv(
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history to export"),
    manager=Depends(get_manager),
):
    """
    Export polled prices to CSV.

    Returns a downloadable CSV file with one row per stored quote.
    """
    try:
        history = manager.storage.get_price_history(hours)
    except Exception as e:
        logger.error(f"Error exporting CSV: {e}")
        raise HTTPException(status_code=500, detail="Failed to export CSV")

    rows = [
        [_cell(row.get(key)) for key in ("exchange", "price", "bid", "ask", "timestamp", "created_at")]
        for row in history
    ]
    return _csv_response(generate_csv(PRICE_CSV_HEADERS, rows), f"price_history_{hours}h.csv")


@router.get("/export/opportunities/csv")
def export_opportunities_csv(
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history to export"),
    manager=Depends(get_manager),
):
    """Export stored arbitrage opportunities to CSV"""
    try:
        history = manager.storage.get_opportunity_history(hours)
    except Exception as e:
        logger.error(f"Error exporting opportunities: {e}")
        raise HTTPException(status_code=500, detail="Failed to export opportunities")

    headers = ArbitrageOpportunity.csv_headers()
    rows = [[_cell(row.get(key)) for key in headers] for row in history]
    return _csv_response(generate_csv(headers, rows), f"opportunities_{hours}h.csv")
