import logging
from contextlib import contextmanager
from typing import List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.charts import mounted_chart, render_to_altair
from core.data import load_dashboard_data, prepare_context
from core.filters import ALL, describe_filters, normalize_filters
from core.metrics_infra import infra_charts
from core.metrics_innovation import innovation_charts
from core.metrics_invest import invest_charts
from core.pipeline import ChartConfig, Dimensions

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
alt.data_transformers.disable_max_rows()

PAGES = {
    "Infraestrutura": ("Infrastructure", "infra", infra_charts),
    "Inovação": ("Innovation", "innovation", innovation_charts),
    "Investimento": ("Investment", "invest", invest_charts),
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(chips: List[str]) -> str:
    return "".join(f"<span class='chip'>{txt}</span>" for txt in chips)


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def draw_chart(config: ChartConfig, records: pd.DataFrame, dims: Dimensions):
    with mounted_chart(config, records, dims) as (render, _hover), card(config.title):
        if render.is_empty:
            st.info("No data for the current filters.")
            return
        st.altair_chart(render_to_altair(render), use_container_width=False)


# ---------- UI setup ----------
st.set_page_config(page_title="China × Japan Tech Sector Dashboard", layout="wide")
inject_base_styles()
st.title("China × Japan Tech Sector Dashboard")
st.caption("Infrastructure, innovation and investment indicators by country, sector and year.")

data_ctx = load_dashboard_data()
records = data_ctx.get("records", pd.DataFrame())
if records is None or records.empty:
    st.error("No records found. Place tech_sector_stats.csv under data/ or set TECHDASH_DATA_FILE.")
    st.stop()

years = data_ctx.get("years") or []
FILTER_KEYS = ("f_country", "f_sector", "f_start", "f_end")


def clear_filters():
    for key in FILTER_KEYS:
        st.session_state[key] = "Todos"


with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", list(PAGES), index=0)

    st.markdown("---")
    st.markdown("### Filters")
    country = st.selectbox("Country", options=["Todos"] + list(data_ctx.get("countries", [])), key="f_country")
    sector = st.selectbox("Sector", options=["Todos"] + list(data_ctx.get("sectors", [])), key="f_sector")
    start = st.selectbox("From year", options=["Todos"] + sorted(years), key="f_start")
    end = st.selectbox("To year", options=["Todos"] + list(years), key="f_end")
    st.button("Clear filters", on_click=clear_filters)

    st.markdown("---")
    with st.expander("Chart size", expanded=False):
        chart_width = st.slider("Width", min_value=300, max_value=1200, value=600, step=50)
        chart_height = st.slider("Height", min_value=250, max_value=800, value=400, step=50)

filters = normalize_filters(
    {
        "country": country,
        "sector": sector,
        "start": None if start == "Todos" else start,
        "end": None if end == "Todos" else end,
    },
    available_sectors=data_ctx.get("sectors") or None,
)
ctx = prepare_context(filters, data_ctx)
filtered_records = ctx["filtered_records"]
dims = Dimensions(width=chart_width, height=chart_height)


def render_dashboard_page(nav_label: str):
    title, slug, charts_for = PAGES[nav_label]
    render_page_header(
        title,
        f"Home / {title}",
        format_filter_summary(describe_filters(filters)),
        export_df=filtered_records,
        export_name=f"{slug}.csv",
    )
    if filtered_records.empty:
        st.info("No rows match the current filters.")

    configs = charts_for(filters)
    for i in range(0, len(configs), 2):
        cols = st.columns(2)
        for col, config in zip(cols, configs[i : i + 2]):
            with col:
                draw_chart(config, filtered_records, dims)

    if filters.country != ALL or filters.sector != ALL:
        st.caption("Charts only include records within the selected filters.")


render_dashboard_page(nav_choice)
