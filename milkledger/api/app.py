"""FastAPI JSON application exposing the ledger engine."""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response

from ..config import Config
from ..errors import ValidationError
from ..ledger import (
    CostAggregator,
    DeliveryLedger,
    DeliveryRecord,
    month_bounds,
    parse_day,
    retention_window,
)
from ..serializer import DEFAULT_EXPORT_NAME, LedgerSerializer
from ..sync import SyncGateway

logger = logging.getLogger(__name__)


def _day_or_400(value: str) -> date:
    try:
        return parse_day(value)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def create_app(
    config: Config,
    ledger: DeliveryLedger,
    gateway: SyncGateway | None = None,
    serializer: LedgerSerializer | None = None,
    aggregator: CostAggregator | None = None,
    pull_on_startup: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration.
        ledger: The session's ledger.
        gateway: Optional SyncGateway; sync routes answer 503 without it.
        serializer: Serializer for export/import (default instance if None).
        aggregator: Cost aggregator (built from the ledger's catalog if None).
        pull_on_startup: Pull the remote ledger when the app starts.

    Returns:
        Configured FastAPI application.
    """
    serializer = serializer or LedgerSerializer()
    aggregator = aggregator or CostAggregator(ledger.catalog)

    def _window() -> tuple[date, date]:
        return retention_window(
            date.today(),
            months_back=config.sync.months_back,
            months_forward=config.sync.months_forward,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pull_on_startup and gateway is not None and config.sync.enabled:
            result = await gateway.pull(window=_window())
            if not result.ok:
                logger.warning(f"Startup pull failed, using local cache: {result.error}")
        yield

    app = FastAPI(
        title="Milk Ledger",
        description="Daily milk deliveries and vendor cost totals",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store references for route handlers
    app.state.config = config
    app.state.ledger = ledger
    app.state.gateway = gateway

    # ==================== Catalog & ledger ====================

    @app.get("/api/vendors")
    async def api_vendors() -> dict[str, Any]:
        """List configured vendors."""
        return {
            "shifts": ledger.catalog.shift_names,
            "vendors": [
                {
                    "name": vendor.name,
                    "shifts": dict(vendor.shifts),
                    "price": vendor.unit_price,
                }
                for vendor in ledger.catalog
            ],
        }

    @app.get("/api/entries")
    async def api_entries() -> dict[str, Any]:
        """All entries in date order."""
        entries = [entry.to_dict() for entry in ledger.list_entries()]
        return {"count": len(entries), "entries": entries}

    @app.get("/api/entries/{day}")
    async def api_get_entry(day: str) -> dict[str, Any]:
        entry = ledger.get(_day_or_400(day))
        if entry is None:
            raise HTTPException(status_code=404, detail=f"No entry for {day}")
        return entry.to_dict()

    @app.put("/api/entries/{day}")
    async def api_put_entry(day: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Replace the deliveries for a date.

        Body: ``{"data": [{"name": vendor, "shifts": {shift: qty}}]}``.
        """
        parsed_day = _day_or_400(day)
        records = payload.get("data")
        if not isinstance(records, list):
            raise HTTPException(status_code=400, detail="Body must contain a 'data' list")
        try:
            deliveries = [DeliveryRecord.from_dict(r).require_non_negative() for r in records]
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ledger.upsert(parsed_day, deliveries).to_dict()

    @app.delete("/api/entries/{day}")
    async def api_delete_entry(day: str) -> dict[str, Any]:
        if not ledger.remove(_day_or_400(day)):
            raise HTTPException(status_code=404, detail=f"No entry for {day}")
        return {"removed": day}

    # ==================== Totals ====================

    @app.get("/api/totals")
    async def api_totals(
        start: str | None = None,
        end: str | None = None,
    ) -> dict[str, Any]:
        """Vendor totals over a range (defaults to the current month)."""
        default_start, default_end = month_bounds(date.today())
        start_day = _day_or_400(start) if start else default_start
        end_day = _day_or_400(end) if end else default_end
        return {
            "start": start_day.isoformat(),
            "end": end_day.isoformat(),
            "totals": aggregator.compute_totals(ledger.list_entries(), start_day, end_day),
        }

    @app.get("/api/summary")
    async def api_summary() -> dict[str, Any]:
        """Previous and current month totals for every vendor."""
        months = aggregator.monthly_summary(ledger.list_entries(), date.today())
        return {"months": [month.to_dict() for month in months]}

    # ==================== Sync ====================

    def _require_gateway() -> SyncGateway:
        if gateway is None:
            raise HTTPException(status_code=503, detail="Remote sync is not configured")
        return gateway

    @app.get("/api/sync/status")
    async def api_sync_status() -> dict[str, Any]:
        if gateway is None:
            return {"state": "disabled", "entries": len(ledger)}
        return gateway.get_sync_status()

    @app.post("/api/sync/pull")
    async def api_sync_pull() -> dict[str, Any]:
        result = await _require_gateway().pull(window=_window())
        if not result.ok:
            raise HTTPException(status_code=503, detail=result.error)
        return {"state": result.state.value, "entries": result.entries}

    @app.post("/api/sync/push")
    async def api_sync_push() -> dict[str, Any]:
        result = await _require_gateway().push()
        if not result.ok:
            raise HTTPException(status_code=503, detail=result.error)
        return {"state": result.state.value, "entries": result.entries}

    # ==================== Export / import ====================

    @app.get("/api/export")
    async def api_export() -> Response:
        return Response(
            content=serializer.to_bytes(ledger.list_entries()),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{DEFAULT_EXPORT_NAME}"'},
        )

    @app.post("/api/import")
    async def api_import(request: Request) -> dict[str, Any]:
        """Replace the ledger with an exported file sent as the request body."""
        try:
            entries = serializer.from_bytes(await request.body())
            count = ledger.replace_all(entries)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info(f"Imported {count} ledger entries")
        return {"imported": count, "timestamp": datetime.now().isoformat()}

    return app
