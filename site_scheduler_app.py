"""
Site Schedule Planner
=====================
Streamlit front end for the CPM scheduler. Activities are edited as raw
records; every change triggers a full recomputation and the computed days,
floats and critical flags are never edited directly.

Supports all four precedence relationships with lag (or lead):
- FS (Finish-to-Start) - default
- SS (Start-to-Start)
- FF (Finish-to-Finish)
- SF (Start-to-Finish)
"""

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from sitecpm.config import get_config
from sitecpm.engine import CPMScheduler
from sitecpm.generator import ScheduleGenerator
from sitecpm.materialize import project_window, timeline_dataframe
from sitecpm.progress import can_start
from sitecpm.refiner import build_refiner
from sitecpm.ui_components import (
    SAMPLE_PROJECT,
    apply_bar_edit,
    boq_items_from_dataframe,
    clear_manual_start,
    editor_dataframe,
    records_from_editor,
    remove_activity,
)
from sitecpm.ui_styles import STATUS_LABELS, STATUS_OPTIONS, THEMES, get_active_theme, get_theme_css
from sitecpm.visualizations import create_network_diagram, create_plotly_gantt


def _recompute() -> None:
    scheduler = CPMScheduler(on_cycle=lambda ids: st.session_state.update(cycle_ids=ids))
    st.session_state.cycle_ids = []
    st.session_state.result = scheduler.calculate(st.session_state.records)
    st.session_state.scheduler = scheduler


def _set_records(records) -> None:
    st.session_state.records = records
    _recompute()


def main():
    """Main Streamlit application."""

    st.set_page_config(
        page_title="Site Schedule Planner",
        page_icon="📅",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    config = get_config()

    if "records" not in st.session_state:
        st.session_state.records = list(SAMPLE_PROJECT)
        _recompute()

    with st.sidebar:
        theme_name = st.selectbox("Theme", options=list(THEMES.keys()))
        theme = get_active_theme(theme_name)
        project_start = st.date_input("Project start date", value=pd.Timestamp.today().date())
        scale = st.radio("Timeline scale", options=["Day", "Week", "Month"], horizontal=True)

        st.divider()
        st.header("Generate from BOQ")
        boq_file = st.file_uploader("BOQ CSV (description, quantity, unit, section)", type=["csv"])
        use_ai = st.checkbox("Refine with generative model", value=config.refiner_available,
                             disabled=not config.refiner_available)
        if st.button("Generate Schedule", use_container_width=True, disabled=boq_file is None):
            items = boq_items_from_dataframe(pd.read_csv(boq_file))
            refiner = build_refiner(config) if use_ai else None
            generator = ScheduleGenerator(refiner=refiner, prompt_item_limit=config.prompt_item_limit)
            with st.spinner("Building schedule..."):
                activities = generator.generate(items)
            _set_records([act.to_record() for act in activities])
            st.success(f"Generated {len(activities)} activities from {len(items)} BOQ line(s).")
            st.rerun()

        st.divider()
        if st.button("Load Sample Project", use_container_width=True):
            _set_records(list(SAMPLE_PROJECT))
            st.rerun()
        if st.button("Clear All Activities", use_container_width=True, type="secondary"):
            _set_records([])
            st.rerun()

    st.markdown(get_theme_css(theme), unsafe_allow_html=True)
    st.title("📅 Site Schedule Planner")
    st.caption("Critical Path Method with FS / SS / FF / SF dependencies and lag")

    result = st.session_state.result
    scheduler = st.session_state.scheduler

    if result.is_fallback:
        st.warning(
            "Circular dependency detected between "
            f"{', '.join(st.session_state.cycle_ids)}. Activities are shown one after another "
            "until the loop is removed."
        )

    # Activity editing
    st.header("Activities")
    st.caption("Dependencies use 'ID:TYPE:LAG' separated by ';' (a bare ID means FS with no lag).")
    edited = st.data_editor(
        editor_dataframe(st.session_state.records),
        num_rows="dynamic",
        use_container_width=True,
        hide_index=True,
        column_config={
            "Status": st.column_config.SelectboxColumn(options=STATUS_OPTIONS),
            "Duration": st.column_config.NumberColumn(min_value=1, step=1),
            "Manual Start": st.column_config.NumberColumn(min_value=1, step=1),
        },
        key="activity_editor",
    )
    if st.button("Apply Changes", type="primary"):
        records, errors = records_from_editor(edited)
        for error in errors:
            st.error(error)
        if not errors:
            _set_records(records)
            st.rerun()

    activity_ids = [record["id"] for record in st.session_state.records]
    if activity_ids:
        with st.expander("Move / Resize / Remove Activity"):
            selected_id = st.selectbox("Activity", options=activity_ids)
            current = next(act for act in result.activities if act.id == selected_id)
            col_a, col_b = st.columns(2)
            with col_a:
                new_start = st.number_input("Start day", min_value=1, value=int(current.start_day or 1), step=1)
            with col_b:
                new_duration = st.number_input("Duration", min_value=1, value=int(current.duration), step=1)
            col_c, col_d, col_e = st.columns(3)
            with col_c:
                if st.button("Apply to Schedule"):
                    _set_records(apply_bar_edit(st.session_state.records, selected_id, new_start, new_duration))
                    st.rerun()
            with col_d:
                if st.button("Clear Manual Start"):
                    _set_records(clear_manual_start(st.session_state.records, selected_id))
                    st.rerun()
            with col_e:
                if st.button("Remove Activity"):
                    _set_records(remove_activity(st.session_state.records, selected_id))
                    st.rerun()

    if not result.activities:
        st.info("No activities yet. Load the sample project or generate one from a BOQ.")
        return

    # Results
    st.divider()
    st.header("📈 Schedule")
    start, end, duration_days = project_window(result.activities, project_start, config.min_project_days)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Project Duration", f"{result.project_duration} days")
    col2.metric("Critical Activities", f"{sum(1 for a in result.activities if a.is_critical)}")
    col3.metric("Planned Window", f"{duration_days} days")
    col4.metric("Ready to Start", f"{sum(1 for a in result.activities if can_start(a, result.activities))}")

    results_df = scheduler.results_dataframe()
    results_df["Status"] = [
        STATUS_LABELS.get(a.status, a.status) + (" (ready)" if can_start(a, result.activities) else "")
        for a in result.activities
    ]

    def highlight_critical(row):
        if row['Critical'] == 'Yes':
            return [f"background-color: {theme['critical_soft']}"] * len(row)
        return [''] * len(row)

    st.dataframe(results_df.style.apply(highlight_critical, axis=1), use_container_width=True, hide_index=True)

    if result.critical_path:
        st.subheader("Critical Path")
        st.markdown(f"**{' → '.join(result.critical_path)}**")

    records = [act.to_record(include_late=True) for act in result.activities]
    tab1, tab2, tab3, tab4 = st.tabs(["📅 Timeline", "📊 Network Diagram", "🗓 Calendar", "📝 Calculation Details"])

    with tab1:
        st.plotly_chart(
            create_plotly_gantt(records, theme, project_start=str(start.date()), scale=scale),
            use_container_width=True,
        )

    with tab2:
        fig = create_network_diagram(records, theme)
        st.pyplot(fig)
        plt.close(fig)
        st.caption("Edge styles indicate relationship types: Solid=FS, Dashed=SS, Dotted=FF, Dashdot=SF")

    with tab3:
        st.caption(f"{start.date()} → {end.date()}")
        st.dataframe(timeline_dataframe(result.activities, start), use_container_width=True, hide_index=True)

    with tab4:
        st.text_area("Calculation Steps", value="\n".join(result.calculation_log), height=500, disabled=True)


if __name__ == "__main__":
    main()
