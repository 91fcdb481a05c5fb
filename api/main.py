from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date
import logging
import math
from typing import Optional

import numpy as np
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import FilterCriteriaModel, MetaOptionsResponse, RefreshResponse, TableRequest
from audit_core.data import load_matrix
from audit_core.filters import filter_options, location_detail, normalize_criteria
from audit_core.metrics_debug import compute_debug
from audit_core.metrics_overview import compute_overview
from audit_core.pipeline import PipelineContext
from audit_core.refresh import AutoRefresher, RefreshController
from audit_core.settings import Settings, load_settings
from audit_core.table import build_table_view, column_count, export_projection, normalize_view_state, to_csv_text

logger = logging.getLogger(__name__)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for numpy objects and non-finite floats."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                date: lambda d: d.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _no_data(controller: RefreshController) -> JSONResponse:
    message = str(controller.last_error) if controller.last_error else "No data loaded yet"
    return JSONResponse(status_code=503, content={"error": message, "type": "NoData", "sync_status": controller.sync_status})


def create_app(
    controller: Optional[RefreshController] = None,
    *,
    settings: Optional[Settings] = None,
    auto_refresh: bool = True,
) -> FastAPI:
    settings = settings or load_settings()
    if controller is None:
        controller = RefreshController(lambda: load_matrix(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresher = AutoRefresher(controller, settings.refresh_seconds)
        if controller.context is None:
            await asyncio.to_thread(refresher.tick)
        if auto_refresh:
            refresher.start()
        try:
            yield
        finally:
            await asyncio.to_thread(refresher.stop, 1.0)

    app = FastAPI(title="WAM Audit Dashboard API", version="0.1.0", lifespan=lifespan)
    app.state.controller = controller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _controller(request: Request) -> RefreshController:
        return request.app.state.controller

    def _context(request: Request) -> Optional[PipelineContext]:
        return _controller(request).context

    @app.get("/meta/options")
    def meta_options(request: Request):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            options = filter_options(ctx.rows)
            return _json(MetaOptionsResponse(headers=ctx.headers, **options).model_dump())
        except Exception as exc:
            logger.exception("meta_options failed")
            return _error(exc)

    @app.post("/overview")
    def overview(request: Request, filters: FilterCriteriaModel):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            criteria = normalize_criteria(filters.model_dump())
            return _json(compute_overview(criteria, ctx))
        except Exception as exc:
            logger.exception("overview failed")
            return _error(exc)

    @app.post("/table")
    def table(request: Request, body: TableRequest):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            rows = ctx.filtered(normalize_criteria(body.filters.model_dump()))
            state = normalize_view_state(body.view.model_dump(), column_count(ctx.rows, ctx.headers))
            return _json(asdict(build_table_view(rows, state, ctx.headers)))
        except Exception as exc:
            logger.exception("table failed")
            return _error(exc)

    @app.post("/export")
    def export(request: Request, body: TableRequest):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            rows = ctx.filtered(normalize_criteria(body.filters.model_dump()))
            state = normalize_view_state(body.view.model_dump(), column_count(ctx.rows, ctx.headers))
            csv_text = to_csv_text(export_projection(rows, state.visible_columns, ctx.headers))
        except Exception as exc:
            logger.exception("export failed")
            return _error(exc)
        filename = f"wam_filtered_data_{date.today().isoformat()}.csv"
        logger.info("Exported %d filtered records to CSV", len(rows))
        return Response(
            content=csv_text.encode("utf-8"),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/locations/{name}")
    def location(request: Request, name: str):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            detail = location_detail(ctx.rows, name)
            detail["headers"] = ctx.headers[:10]
            return _json(detail)
        except Exception as exc:
            logger.exception("location failed")
            return _error(exc)

    @app.post("/refresh")
    def refresh(request: Request):
        controller = _controller(request)
        logger.info("Manual refresh triggered")
        status = controller.refresh()
        ctx = controller.context
        payload = RefreshResponse(
            status=status.value,
            sync_status=controller.sync_status,
            records=len(ctx.rows) if ctx is not None else 0,
            error=str(controller.last_error) if controller.last_error else None,
        )
        return _json(payload.model_dump())

    @app.get("/debug")
    def debug(request: Request):
        ctx = _context(request)
        if ctx is None:
            return _no_data(_controller(request))
        try:
            return _json(compute_debug(ctx))
        except Exception as exc:
            logger.exception("debug failed")
            return _error(exc)

    return app


app = create_app()
