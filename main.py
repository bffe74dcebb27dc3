"""
Dimensioning ingestion - Streamlit application
"""
import sys
from pathlib import Path

# make the src directory importable when run with `streamlit run main.py`
base_path = Path(__file__).parent
sys.path.insert(0, str(base_path / "src"))


def launch_streamlit():
    """Start Streamlit on this file when invoked as ``python main.py``."""
    import streamlit.web.cli as stcli

    sys.argv = [
        "streamlit",
        "run",
        __file__,
        "--server.headless=true",
        "--server.port=8501",
        "--server.address=localhost",
        "--browser.gatherUsageStats=false",
    ]
    sys.exit(stcli.main())


if __name__ == "__main__":
    if not ("streamlit" in sys.argv[0] or (len(sys.argv) > 1 and sys.argv[1] == "run")):
        launch_streamlit()

import io
import logging

import plotly.express as px
import streamlit as st

from shift_dimensioning import (
    IngestionError,
    InferenceError,
    break_table,
    build_pipeline,
    configure,
    export_to_excel,
    ingest,
    init_database,
    load_settings,
    occupancy_frame,
    override_break,
    replace_snapshots,
    verdict_table,
)
from shift_dimensioning.breaks import OverrideError
from shift_dimensioning.database import list_breaks_by_date, list_dates

settings = load_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

st.set_page_config(
    page_title="Dimensioning",
    page_icon="☕",
    layout="wide",
    initial_sidebar_state="expanded",
)

configure(settings.db_path)
init_database()

st.title("☕ Dimensioning and break scheduling")
st.markdown("---")

tab_ingest, tab_stored = st.tabs(["Ingest file", "Stored breaks"])

with tab_ingest:
    uploaded = st.file_uploader("Dimensioning file", type=["xlsx", "xlsm", "csv"])
    use_inference = st.checkbox(
        "Use inference when the columns cannot be detected",
        value=settings.inference_enabled,
        disabled=not settings.inference_enabled,
    )

    if uploaded is not None and st.button("Process", type="primary"):
        pipeline = build_pipeline(settings) if use_inference else None
        try:
            st.session_state["result"] = ingest(
                io.BytesIO(uploaded.getvalue()),
                filename=uploaded.name,
                pipeline=pipeline,
                settings=settings,
            )
        except IngestionError as exc:
            st.session_state.pop("result", None)
            st.error(f"{exc.code.value}: {exc}")
        except InferenceError as exc:
            st.session_state.pop("result", None)
            st.error(f"Inference failed ({exc.kind.value}): {exc.message}")

    result = st.session_state.get("result")
    if result is not None:
        st.subheader(f"{result.filename}: {result.period.month_name} {result.period.year}")
        if result.degraded:
            st.warning("Degraded extraction: only part of the file could be recovered.")
        for warning in result.warnings:
            st.warning(warning)

        report = result.report
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Rows read", report.rows_seen)
        col2.metric("Records kept", report.retained)
        col3.metric("Not scheduled (motive)", report.excluded_motive)
        col4.metric("Dates", len(result.dates))

        with st.expander("Extraction report"):
            st.json(report.to_dict())

        st.markdown("### Breaks")
        st.dataframe(break_table(result), hide_index=True, width="stretch")

        st.markdown("### Distribution")
        st.dataframe(verdict_table(result), hide_index=True, width="stretch")

        if result.dates:
            day = st.selectbox("Date", options=result.dates)
            frame = occupancy_frame(result.snapshots[day])
            if not frame.empty:
                fig = px.bar(
                    frame,
                    x="time",
                    y="occupancy",
                    title=f"Agents on break per minute ({day})",
                    labels={"time": "Minute", "occupancy": "Agents"},
                )
                fig.add_hline(y=result.verdicts[day].cap, line_dash="dash", annotation_text="cap")
                st.plotly_chart(fig, width="stretch")

        col_save, col_export = st.columns(2)
        with col_save:
            blocked = settings.enforce_distribution and not result.all_valid
            if st.button("Save", disabled=blocked, width="stretch"):
                file_id = replace_snapshots(result)
                st.success(f"Saved as file #{file_id}")
        with col_export:
            buffer = io.BytesIO()
            if export_to_excel(result, buffer):
                st.download_button(
                    "Download Excel",
                    data=buffer.getvalue(),
                    file_name=f"refrigerios_{result.period.month_name}_{result.period.year}.xlsx",
                    width="stretch",
                )

with tab_stored:
    dates = list_dates()
    if not dates:
        st.info("Nothing stored yet.")
    else:
        day = st.selectbox("Stored date", options=dates, index=len(dates) - 1)
        breaks = list_breaks_by_date(day)
        st.dataframe(
            [b.to_dict() for b in breaks],
            hide_index=True,
            width="stretch",
        )

        st.markdown("### Manual override")
        agents = sorted({b.agent_name for b in breaks})
        if agents:
            col_a, col_k, col_v = st.columns(3)
            agent = col_a.selectbox("Agent", options=agents)
            kind = col_k.selectbox("Break", options=["First", "Second"])
            value = col_v.text_input("Start (HH:MM or N/A)", value="N/A")
            if st.button("Apply override"):
                try:
                    override_break(day, agent, kind, value)
                except (OverrideError, LookupError) as exc:
                    st.error(str(exc))
                else:
                    st.success("Override saved")
                    st.rerun()
