from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import List

import altair as alt
import pandas as pd
import streamlit as st

from audit_core.aggregates import compute_snapshot, format_month_label, rate_band, success_label
from audit_core.charts import location_distribution_chart, location_status_chart, monthly_trend_chart, status_chart
from audit_core.data import load_matrix
from audit_core.filters import (
    QUICK_PRESETS,
    FilterCriteria,
    describe_criteria,
    filter_options,
    location_detail,
    normalize_criteria,
    quick_filter,
)
from audit_core.refresh import RefreshController
from audit_core.settings import load_settings
from audit_core.table import (
    TableViewState,
    build_table_view,
    change_page_size,
    column_count,
    export_projection,
    to_csv_text,
    toggle_sort,
)

alt.data_transformers.disable_max_rows()

BAND_COLORS = {"success": "#16a34a", "warning": "#d97706", "danger": "#dc2626"}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
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


def format_filter_summary(criteria: FilterCriteria) -> str:
    tags = describe_criteria(criteria) or ["All records"]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in tags])


@st.cache_resource
def get_controller() -> RefreshController:
    settings = load_settings()
    return RefreshController(lambda: load_matrix(settings))


def ensure_fresh(controller: RefreshController, force: bool = False):
    settings = load_settings()
    stale = controller.last_attempt is None or (datetime.now() - controller.last_attempt).total_seconds() >= settings.refresh_seconds
    if force or stale:
        with st.spinner("Syncing..."):
            controller.refresh()


def render_kpi_cards(rows):
    snap = compute_snapshot(rows)
    cols = st.columns(4)
    cols[0].metric("Total Audits", snap.total_records)
    cols[1].metric("Total Offices", snap.total_locations)
    band = BAND_COLORS[rate_band(snap.on_track_rate)]
    cols[2].markdown(
        f"**On-Track Rate**<br><span style='font-size:1.8rem;color:{band}'>{snap.on_track_rate}%</span>"
        f"<br><small>{snap.on_track_count} of {snap.total_records} · {success_label(snap.on_track_rate)}</small>",
        unsafe_allow_html=True,
    )
    rating_color = BAND_COLORS[rate_band(snap.average_rating * 10)]
    cols[3].markdown(
        f"**Avg Meeting Rating**<br><span style='font-size:1.8rem;color:{rating_color}'>{snap.average_rating}/10</span>"
        f"<br><small>{snap.rating_count} ratings</small>",
        unsafe_allow_html=True,
    )
    return snap


def render_charts(snap):
    if not snap.total_records:
        st.info("No records match the current filters.")
        return
    top = st.columns(2)
    with top[0]:
        with card("Rock Review"):
            st.altair_chart(status_chart(snap), use_container_width=True)
    with top[1]:
        with card("Office Distribution"):
            st.altair_chart(location_distribution_chart(snap), use_container_width=True)
    with card("On-Track vs Off-Track by Office (top 10)"):
        st.altair_chart(location_status_chart(snap), use_container_width=True)
    with card("Monthly Trend"):
        if snap.monthly_trend:
            st.altair_chart(monthly_trend_chart(snap), use_container_width=True)
            st.caption(", ".join(format_month_label(p.month_key) for p in snap.monthly_trend))
        else:
            st.info("No parseable audit dates for trend analysis.")


def render_table(rows, headers: List[str]):
    state: TableViewState = st.session_state.get("table_state", TableViewState())
    width = column_count(rows, headers)

    c1, c2, c3 = st.columns([4, 2, 2])
    with c1:
        labels = [headers[i] if i < len(headers) and headers[i] else f"Column {i + 1}" for i in range(width)]
        current = list(state.visible_columns) if state.visible_columns is not None else list(range(width))
        chosen = st.multiselect("Columns", options=list(range(width)), default=current, format_func=lambda i: labels[i])
        if tuple(sorted(chosen)) != tuple(current):
            state = replace(state, visible_columns=tuple(sorted(chosen)))
    with c2:
        sort_choice = st.selectbox("Sort by", options=[None] + list(range(width)), format_func=lambda i: "-" if i is None else labels[i])
        if sort_choice is not None and sort_choice != state.sort_column:
            state = toggle_sort(state, sort_choice)
        elif sort_choice is not None and st.button("Flip sort direction"):
            state = toggle_sort(state, sort_choice)
    with c3:
        size_options = [10, 25, 50, 100, "all"]
        size = st.selectbox("Rows per page", options=size_options, index=size_options.index(state.page_size) if state.page_size in size_options else 1)
        if size != state.page_size:
            state = change_page_size(state, size)

    page = build_table_view(rows, state, headers)
    if page.total_pages > 1:
        page_index = st.number_input("Page", min_value=1, max_value=page.total_pages, value=page.page_index, step=1)
        if page_index != page.page_index:
            state = replace(state, page_index=int(page_index))
            page = build_table_view(rows, state, headers)
    st.session_state["table_state"] = state

    df = pd.DataFrame(page.page_rows, columns=page.headers)
    st.dataframe(df, hide_index=True, use_container_width=True)
    st.caption(f"Showing {page.showing_range_start}-{page.showing_range_end} of {page.total_rows} · page {page.page_index}/{page.total_pages}")

    csv_text = to_csv_text(export_projection(rows, state.visible_columns, headers))
    st.download_button(
        "Export CSV",
        data=csv_text.encode("utf-8"),
        file_name=f"wam_filtered_data_{date.today().isoformat()}.csv",
        mime="text/csv",
    )


def sidebar_filters(rows) -> FilterCriteria:
    options = filter_options(rows)
    with st.sidebar:
        st.markdown("### Quick filters")
        preset = st.radio("Preset", ["none", *QUICK_PRESETS], index=0, horizontal=True)
        if preset != "none":
            return quick_filter(preset)

        st.markdown("### Filters")
        date_from = st.date_input("From", value=None)
        date_to = st.date_input("To", value=None)
        locations = st.multiselect("Office", options=options["locations"])
        persons = st.multiselect("Personnel", options=options["persons"])
        status = st.selectbox("Status", options=[""] + options["statuses"], format_func=lambda s: s or "All")

    return normalize_criteria(
        {"date_from": date_from, "date_to": date_to, "locations": locations, "persons": persons, "status": status}
    )


# ---------- UI setup ----------
st.set_page_config(page_title="WAM Audit Dashboard", layout="wide")
inject_base_styles()
st.title("WAM Audit Dashboard")

controller = get_controller()
top = st.columns([6, 2])
with top[1]:
    force = st.button("Refresh")
ensure_fresh(controller, force=force)

ctx = controller.context
if controller.last_error is not None:
    st.error(f"Error: {controller.last_error}")
if ctx is None:
    st.info("Set AUDIT_SHEET_ID (and GOOGLE_API_KEY) or AUDIT_XLSX_PATH to load audit data.")
    st.stop()

with top[0]:
    st.caption(f"Sync: {controller.sync_status} · last loaded {ctx.loaded_at:%H:%M:%S}")

criteria = sidebar_filters(ctx.rows)
filtered = ctx.filtered(criteria)
st.markdown(f"<div class='chip-row'>{format_filter_summary(criteria)}</div>", unsafe_allow_html=True)

with card("Summary"):
    snapshot = render_kpi_cards(filtered)
render_charts(snapshot)

with card("Audit Records"):
    render_table(filtered, ctx.headers)

with st.sidebar:
    st.markdown("---")
    office = st.selectbox("Office details", options=[""] + filter_options(filtered)["locations"], format_func=lambda s: s or "-")
if office:
    detail = location_detail(ctx.rows, office)
    with card(f"{office}: Detailed Records ({detail['total_records']})"):
        st.dataframe(pd.DataFrame(detail["rows"]), hide_index=True, use_container_width=True)
