"""
================================================================================
PopHealth-Explorer: Population Health Dashboard
================================================================================

An interactive Streamlit dashboard over extracted clinical mentions
(symptoms, diagnoses, diagnostic categories, HRSN indicators) tagged with
session dates. All aggregation lives in the `pophealth` package; this file
only wires filters to the engine and draws what it returns.

Structure:
    SECTION 1: Imports & Page Configuration
    SECTION 2: Data Loading
    SECTION 3: Engine Calls (cached)
    SECTION 4: Sidebar Controls
    SECTION 5: Header & Key Metrics
    SECTION 6: Tab Container
        - Tab 1: Heatmap (item x session pivot)
        - Tab 2: Intensity (bubble chart)
        - Tab 3: Categories (top-N bar/pie)
        - Tab 4: Population (demographics, HRSN)
        - Tab 5: Risk Stratification
    SECTION 7: Data Preview

To run:
    cd code/
    streamlit run app.py
================================================================================
"""

# =============================================================================
# SECTION 1: IMPORTS & PAGE CONFIGURATION
# =============================================================================

import streamlit as st

from pophealth import fields as F
from pophealth.charts import bar_chart, bubble_chart, heatmap_chart, pie_chart, pivot_table_frame, risk_chart
from pophealth.config import COLOR_THEMES, DisplayMode, get_settings
from pophealth.fallback import events_candidate, patients_candidate, resolve_source
from pophealth.filters import ALL, Criteria
from pophealth.ingest import load_directory
from pophealth.logs import configure_logging
from pophealth.pipeline import PipelineConfig, run_pipeline

st.set_page_config(
    page_title="PopHealth-Explorer",
    page_icon="🏥",
    layout="wide"
)

settings = get_settings()
configure_logging(settings.log_level)

ROW_FIELDS = {
    'Symptoms': F.SYMPTOM,
    'Diagnoses': F.DIAGNOSIS,
    'Diagnostic Categories': F.CATEGORY,
    'HRSN Indicators': F.HRSN,
}

DEMOGRAPHICS = {
    'Age Range': 'age_range',
    'Gender': 'gender',
    'Race': 'race',
    'Ethnicity': 'ethnicity',
    'ZIP Code': 'zip_code',
}


# =============================================================================
# SECTION 2: DATA LOADING
# =============================================================================

@st.cache_data
def load_data(data_dir):
    """
    Load extracted_symptoms.csv and patients.csv into canonical frames.

    Args:
        data_dir: Directory holding the CSV exports

    Returns:
        tuple: (events, patients)
    """
    return load_directory(data_dir)


# =============================================================================
# SECTION 3: ENGINE CALLS (CACHED)
# =============================================================================
# Cache keys: data directory + every control value. The frames themselves
# are skipped from hashing (leading underscore) since they are a pure
# function of data_dir.

@st.cache_data
def compute(_events, _patients, data_dir, criteria, row_field, display_mode, theme, category_count):
    config = PipelineConfig.from_settings(
        settings,
        criteria=criteria,
        row_field=row_field,
        display_mode=display_mode,
        color_theme=theme,
        category_count=category_count,
    )
    return run_pipeline(_events, _patients, config)


@st.cache_data
def population_dataset(_patients, _events, data_dir, criteria, attribute, display_mode, category_count):
    """Demographic/HRSN distribution, from the patient table first, else the events."""
    candidates = [patients_candidate(_patients, attribute, display_mode, category_count)]
    if attribute == 'hrsn':
        candidates.append(events_candidate(_events, F.HRSN, display_mode, category_count, unit='patients'))
    return resolve_source(candidates)


def options_for(events, field):
    values = sorted(events[field].dropna().unique().tolist()) if len(events) else []
    return [ALL] + values


# =============================================================================
# SECTION 4: SIDEBAR CONTROLS
# =============================================================================

data_dir = str(settings.data_dir)
events, patients = load_data(data_dir)

with st.sidebar:
    st.header("🔎 Filters")

    selected_diagnosis = st.selectbox("Diagnosis:", options_for(events, F.DIAGNOSIS))
    selected_category = st.selectbox("Diagnostic Category:", options_for(events, F.CATEGORY))
    selected_symptom = st.selectbox("Symptom:", options_for(events, F.SYMPTOM))
    selected_icd10 = st.selectbox("ICD-10 Code:", options_for(events, F.ICD10))
    selected_flag = st.selectbox("HRSN Need:", [ALL] + list(F.HRSN_INDICATORS))
    selected_patients = st.multiselect("Patients:", options_for(events, F.PATIENT_ID)[1:])

    session_dates = options_for(events, F.SESSION_DATE)
    start_date = st.selectbox("Sessions from:", session_dates)
    # End choices never precede the start
    end_dates = [d for d in session_dates[1:] if start_date == ALL or d >= start_date]
    end_date = st.selectbox("Sessions to:", [ALL] + end_dates)

    st.divider()
    st.header("🎨 Display")

    display_mode = st.radio(
        "Show values as:",
        [m.value for m in DisplayMode],
        index=[m.value for m in DisplayMode].index(settings.display_mode.value),
        horizontal=True
    )
    themes = list(COLOR_THEMES)
    theme = st.selectbox("Color theme:", themes, index=themes.index(settings.color_theme))
    category_count = st.slider("Categories shown:", min_value=5, max_value=40,
                               value=max(5, min(40, settings.category_count)))

criteria = Criteria(
    diagnosis=selected_diagnosis,
    diagnostic_category=selected_category,
    symptom=selected_symptom,
    icd10_code=selected_icd10,
    hrsn_flag=selected_flag,
    patient_ids=selected_patients,
    start_date=start_date,
    end_date=end_date,
)


# =============================================================================
# SECTION 5: HEADER & KEY METRICS
# =============================================================================

st.title("🏥 PopHealth-Explorer")
st.markdown("### Population Health Reporting")
st.markdown(
    "*Symptoms, diagnoses and social needs extracted from clinical notes, by session date.*"
)

if events.empty and patients.empty:
    st.warning(f"No data available in `{data_dir}`. Set POPHEALTH_DATA_DIR to the export directory.")
    st.stop()

baseline = compute(events, patients, data_dir, criteria, F.SYMPTOM, display_mode, theme, category_count)

col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Patients", len(patients))
with col2:
    st.metric("Patients in Selection", baseline.population.unique_patient_count)
with col3:
    st.metric("Mentions in Selection", f"{len(baseline.population.events):,}")
with col4:
    st.metric("Sessions", len(baseline.matrix.columns))

if not baseline.has_data:
    st.info("No patients match the current filters.")

st.divider()


# =============================================================================
# SECTION 6: TAB CONTAINER
# =============================================================================

tab1, tab2, tab3, tab4, tab5 = st.tabs([
    "🗺️ Heatmap",
    "🫧 Intensity",
    "📊 Categories",
    "👥 Population",
    "⚠️ Risk"
])


# -----------------------------------------------------------------------------
# TAB 1: HEATMAP
# -----------------------------------------------------------------------------
with tab1:
    label = st.selectbox("Rows:", list(ROW_FIELDS), key="heatmap_rows")
    result = compute(events, patients, data_dir, criteria, ROW_FIELDS[label], display_mode, theme, category_count)

    if result.matrix.is_empty:
        st.info("No data available for this selection.")
    else:
        st.altair_chart(
            heatmap_chart(result.matrix, theme=theme, title=f"{label} by Session"),
            use_container_width=True
        )
        with st.expander("Pivot table"):
            st.dataframe(pivot_table_frame(result.matrix), use_container_width=True)


# -----------------------------------------------------------------------------
# TAB 2: INTENSITY / FREQUENCY
# -----------------------------------------------------------------------------
with tab2:
    label = st.selectbox("Rows:", list(ROW_FIELDS), key="bubble_rows")
    result = compute(events, patients, data_dir, criteria, ROW_FIELDS[label], display_mode, theme, category_count)

    if not result.points:
        st.info("No data available for this selection.")
    else:
        st.plotly_chart(bubble_chart(result.points, theme=theme, title=f"{label}: intensity by session"),
                        use_container_width=True)
        st.caption("💡 Bubble size is the count in that session; color tier is log-scaled against the busiest cell.")


# -----------------------------------------------------------------------------
# TAB 3: CATEGORIES
# -----------------------------------------------------------------------------
with tab3:
    value_title = 'Percent' if display_mode == DisplayMode.PERCENTAGE.value else 'Count'
    cat_col1, cat_col2 = st.columns(2)

    for i, (label, field) in enumerate(ROW_FIELDS.items()):
        result = compute(events, patients, data_dir, criteria, field, display_mode, theme, category_count)
        with (cat_col1 if i % 2 == 0 else cat_col2):
            st.subheader(label)
            if result.items.is_empty:
                st.info("No data available.")
                continue
            st.altair_chart(bar_chart(list(result.items.items), value_title=value_title),
                            use_container_width=True)


# -----------------------------------------------------------------------------
# TAB 4: POPULATION
# -----------------------------------------------------------------------------
with tab4:
    selected_patients = baseline.population.patients
    selected_events = baseline.population.events

    demo_col1, demo_col2 = st.columns(2)
    for i, (label, attribute) in enumerate(DEMOGRAPHICS.items()):
        dataset = population_dataset(selected_patients, selected_events, data_dir, criteria,
                                     attribute, display_mode, category_count)
        with (demo_col1 if i % 2 == 0 else demo_col2):
            st.subheader(label)
            if dataset.is_empty:
                st.info("No data available.")
            else:
                st.plotly_chart(pie_chart(list(dataset.items)), use_container_width=True)

    st.subheader("Health-Related Social Needs")
    hrsn = population_dataset(selected_patients, selected_events, data_dir, criteria,
                              'hrsn', display_mode, category_count)
    if hrsn.is_empty:
        st.info("No HRSN data available.")
    else:
        st.altair_chart(bar_chart(list(hrsn.items), color='#E45756'), use_container_width=True)
        st.caption(f"Source: {hrsn.source}")


# -----------------------------------------------------------------------------
# TAB 5: RISK STRATIFICATION
# -----------------------------------------------------------------------------
with tab5:
    st.markdown("*Patients bucketed by total recorded mentions under the current filters.*")
    st.altair_chart(risk_chart(baseline.risk_items), use_container_width=True)
    st.dataframe(
        [{'Band': item.id, 'Patients': item.raw_value, 'Percent': item.percentage}
         for item in baseline.risk_items],
        use_container_width=True
    )


# =============================================================================
# SECTION 7: DATA PREVIEW
# =============================================================================

st.divider()
with st.expander("🔬 Data preview"):
    st.dataframe(baseline.population.events.head(200), use_container_width=True)
