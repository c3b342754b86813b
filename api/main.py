from __future__ import annotations

import logging
import math
from typing import Callable, Dict

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaOptionsResponse
from core.charts import hover_at
from core.data import load_dashboard_data, prepare_context
from core.filters import DashboardFilters, normalize_filters
from core.metrics_infra import compute_infra, infra_charts
from core.metrics_innovation import compute_innovation, innovation_charts
from core.metrics_invest import compute_invest, invest_charts
from core.pipeline import Dimensions


app = FastAPI(title="Tech Sector Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PAGES: Dict[str, Callable] = {
    "infra": compute_infra,
    "innovation": compute_innovation,
    "invest": compute_invest,
}

PAGE_CHARTS: Dict[str, Callable] = {
    "infra": infra_charts,
    "innovation": innovation_charts,
    "invest": invest_charts,
}


def _filters_from_model(model: DashboardFiltersModel, *, available_sectors: list[str]) -> DashboardFilters:
    raw = model.model_dump()
    return normalize_filters(raw, available_sectors=available_sectors or None)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _render_page(page: str, filters: DashboardFiltersModel, width: float, height: float) -> JSONResponse:
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters, available_sectors=data_ctx.get("sectors", []))
    ctx = prepare_context(f, data_ctx)
    return _json(PAGES[page](f, ctx, Dimensions(width=width, height=height)))


@app.get("/meta/options", response_model=MetaOptionsResponse)
def meta_options():
    try:
        data_ctx = load_dashboard_data()
        return _json(
            {
                "countries": data_ctx.get("countries", []),
                "sectors": data_ctx.get("sectors", []),
                "years": data_ctx.get("years", []),
            }
        )
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/infra")
def infra(filters: DashboardFiltersModel, width: float = Query(default=600, gt=0), height: float = Query(default=400, gt=0)):
    try:
        return _render_page("infra", filters, width, height)
    except Exception as exc:
        logger.exception("infra failed")
        return _error(exc)


@app.post("/innovation")
def innovation(filters: DashboardFiltersModel, width: float = Query(default=600, gt=0), height: float = Query(default=400, gt=0)):
    try:
        return _render_page("innovation", filters, width, height)
    except Exception as exc:
        logger.exception("innovation failed")
        return _error(exc)


@app.post("/invest")
def invest(filters: DashboardFiltersModel, width: float = Query(default=600, gt=0), height: float = Query(default=400, gt=0)):
    try:
        return _render_page("invest", filters, width, height)
    except Exception as exc:
        logger.exception("invest failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: DashboardFiltersModel):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters, available_sectors=data_ctx.get("sectors", []))
    ctx = prepare_context(f, data_ctx)

    export_df = ctx.get("filtered_records") if page in PAGES else pd.DataFrame()
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={page}.csv"})


@app.post("/{page}/hover")
def hover(
    page: str,
    filters: DashboardFiltersModel,
    chart_id: str = Query(...),
    x: float = Query(...),
    y: float = Query(...),
    width: float = Query(default=600, gt=0),
    height: float = Query(default=400, gt=0),
):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, available_sectors=data_ctx.get("sectors", []))
        charts = PAGE_CHARTS[page](f) if page in PAGE_CHARTS else []
        config = next((c for c in charts if c.chart_id == chart_id), None)
        if config is None:
            return JSONResponse(status_code=404, content={"error": f"Unknown chart {chart_id!r} on page {page!r}"})
        ctx = prepare_context(f, data_ctx)
        return _json(hover_at(config, ctx["filtered_records"], x, y, Dimensions(width=width, height=height)))
    except Exception as exc:
        logger.exception("hover failed")
        return _error(exc)
