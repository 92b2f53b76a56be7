"""
UI components for the Effective Frequency Calculator application.
"""

import io
import streamlit as st
from typing import Any, Dict, List, Optional
import logging
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from business_logic.calculator_controller import CalculatorController, ParamView, WizardStep
from data.history_store import CalculationHistoryStore
from models.data_models import (
    CampaignGoal, DerivedMetrics, ParameterEstimate, ParameterKey, SliderParams,
    PARAMETER_KEYS, PARAMETER_MIN, PARAMETER_MAX
)
from business_logic.metric_engine import MIN_FREQUENCY, MAX_FREQUENCY

logger = logging.getLogger(__name__)


PARAMETER_LABELS = {
    ParameterKey.BRAND_AWARENESS: ("Brand Awareness", "Well-known brands need fewer contacts"),
    ParameterKey.MARKET_SATURATION: ("Market Saturation", "Crowded categories need more contacts to break through"),
    ParameterKey.CAMPAIGN_GOAL: ("Campaign Goal Complexity", "Conversion goals need more contacts than awareness"),
    ParameterKey.TARGET_AUDIENCE: ("Target Audience", "Narrow niches need more contacts than the mass market"),
    ParameterKey.PRODUCT_COMPLEXITY: ("Product Complexity", "Complex products take longer to understand"),
    ParameterKey.MESSAGE_COMPLEXITY: ("Message Complexity", "Detailed messages need repetition"),
}

GOAL_OPTIONS = {
    "Select a goal...": None,
    "Awareness": CampaignGoal.AWARENESS,
    "Consideration": CampaignGoal.CONSIDERATION,
    "Conversion": CampaignGoal.CONVERSION,
    "Retention": CampaignGoal.RETENTION,
}


def frequency_color(frequency: float) -> str:
    """Green-to-red hue for a frequency in [1, 15]."""
    normalized = (frequency - MIN_FREQUENCY) / (MAX_FREQUENCY - MIN_FREQUENCY)
    hue = (1 - normalized) * 120
    return f"hsl({hue:g}, 70%, 50%)"


def insight_color(value: float) -> str:
    """Red-to-green hue for a parameter value in [-2, 2]."""
    normalized = (value - PARAMETER_MIN) / (PARAMETER_MAX - PARAMETER_MIN)
    hue = normalized * 120
    return f"hsl({hue:g}, 70%, 50%)"


def frequency_description(frequency: float) -> str:
    if frequency <= 3:
        return "Low contact frequency - suits well-known brands with high awareness"
    if frequency <= 6:
        return "Medium contact frequency - optimal for most advertising campaigns"
    if frequency <= 10:
        return "High contact frequency - needed for complex products or new brands"
    return "Very high contact frequency - for maximum reach and memorability"


def format_budget(amount: Optional[float], currency: str = "RUB") -> str:
    """
    Format a budget amount for display.

    Args:
        amount: Budget amount, None when unknown
        currency: Currency code shown after the amount

    Returns:
        Formatted string such as "1 500 000 RUB", or "-" when unknown
    """
    if amount is None:
        return "-"
    return f"{amount:,.0f}".replace(",", " ") + f" {currency}"


def build_parameter_chart(params: SliderParams) -> go.Figure:
    """Horizontal bar chart of each parameter's contribution to the frequency."""
    labels = [PARAMETER_LABELS[key][0] for key in PARAMETER_KEYS]
    values = [params.get(key) for key in PARAMETER_KEYS]

    fig = go.Figure(go.Bar(
        x=values,
        y=labels,
        orientation='h',
        marker_color=[insight_color(v) for v in values],
        text=[f"{v:+.1f}" for v in values],
        textposition='outside',
    ))
    fig.update_layout(
        title="Parameter contributions",
        xaxis=dict(range=[PARAMETER_MIN - 0.5, PARAMETER_MAX + 0.5], zeroline=True),
        height=320,
        margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def build_history_chart(df: pd.DataFrame) -> go.Figure:
    """Calculated frequency over time for the saved calculations."""
    ordered = df.sort_values('calculation_time')
    fig = px.line(ordered, x='calculation_time', y='calculated_frequency', color='mode', markers=True,
                  labels={'calculation_time': 'Time', 'calculated_frequency': 'Frequency', 'mode': 'Mode'})
    fig.update_yaxes(range=[MIN_FREQUENCY, MAX_FREQUENCY])
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


class BrandInputForm:
    """
    Brand step of the calculator wizard.

    Collects brand name, annual budget and campaign goal, and lets the user
    switch AI analysis on when it is configured.
    """

    def __init__(self, controller: CalculatorController, currency: str = "RUB"):
        self.controller = controller
        self.currency = currency

    def render(self) -> bool:
        """
        Render the brand form.

        Returns:
            True if the user asked to continue to the parameters step
        """
        state = self.controller.state
        st.subheader("📋 Campaign Information")

        with st.form("brand_form", clear_on_submit=False):
            col1, col2 = st.columns(2)

            with col1:
                brand_name = st.text_input(
                    "Brand Name *",
                    value=state.brand_name,
                    placeholder="Enter brand name",
                )
                budget_text = st.text_input(
                    f"Annual Budget ({self.currency}) *",
                    value=state.budget_text,
                    placeholder="e.g. 1 000 000",
                )

            with col2:
                goal_labels = list(GOAL_OPTIONS.keys())
                current_index = 0
                for index, goal in enumerate(GOAL_OPTIONS.values()):
                    if goal is not None and goal == state.campaign_goal:
                        current_index = index
                goal_label = st.selectbox("Campaign Goal", options=goal_labels, index=current_index)

                ai_available = self.controller.analyzer is not None
                ai_mode = st.toggle(
                    "🤖 AI analysis",
                    value=state.ai_mode and ai_available,
                    disabled=not ai_available,
                    help="Estimate the parameters from public data about the brand"
                    if ai_available else "AI analysis is not configured",
                )

            submitted = st.form_submit_button("Continue ➡️", type="primary", use_container_width=True)

        if not submitted:
            return False

        self.controller.set_inputs(brand_name, budget_text, GOAL_OPTIONS[goal_label])
        self.controller.set_ai_mode(ai_mode)

        if not self.controller.can_continue_to_params():
            st.error("❌ Please enter a brand name and a budget greater than zero.")
            return False

        return True


class ParameterPanel:
    """Parameters step: manual sliders or AI insight cards."""

    def __init__(self, controller: CalculatorController, currency: str = "RUB"):
        self.controller = controller
        self.currency = currency

    def render(self):
        state = self.controller.state
        st.subheader("🎚️ Frequency Parameters")

        if state.ai_mode:
            self._render_ai_controls()

        if state.error_notification:
            self._render_notification(state.error_notification)
        elif state.error_message:
            st.error(f"❌ {state.error_message}")

        views = [ParamView.MANUAL.value, ParamView.AI.value]
        selected = st.radio(
            "View",
            options=views,
            index=views.index(state.param_view.value),
            format_func=lambda v: "Manual sliders" if v == ParamView.MANUAL.value else "AI insights",
            horizontal=True,
        )
        self.controller.set_param_view(ParamView(selected))

        if state.param_view == ParamView.AI and state.analysis_complete:
            self._render_insight_cards(state.insights)
            self._render_budget_recommendation()
        else:
            self._render_sliders()

    def _render_notification(self, notification: Dict[str, Any]):
        """Show an error notification built by the error handler."""
        text = f"**{notification['title']}**: {notification['message']}"
        if notification.get('action'):
            text += f"\n\n💡 {notification['action']}"

        if notification['type'] == 'warning':
            st.warning(text)
        else:
            st.error(text)

    def _render_ai_controls(self):
        state = self.controller.state
        if not self.controller.can_run_analysis():
            st.info("💡 Select a campaign goal on the first step to run the AI analysis.")
            return

        if st.button("🔍 Analyze brand", type="primary"):
            with st.spinner(f"🤖 Analyzing {state.brand_name}..."):
                result = self.controller.request_analysis()
            if result is not None and result.success:
                st.success("✅ AI analysis complete")

    def _render_sliders(self):
        for key in PARAMETER_KEYS:
            label, help_text = PARAMETER_LABELS[key]
            value = st.slider(
                label,
                min_value=PARAMETER_MIN,
                max_value=PARAMETER_MAX,
                value=float(self.controller.state.params.get(key)),
                step=0.1,
                help=help_text,
            )
            self.controller.update_parameter(key, value)

    def _render_insight_cards(self, insights: Dict[ParameterKey, ParameterEstimate]):
        columns = st.columns(2)
        for index, key in enumerate(PARAMETER_KEYS):
            estimate = insights.get(key)
            if estimate is None:
                continue

            label, _ = PARAMETER_LABELS[key]
            with columns[index % 2]:
                with st.container(border=True):
                    st.markdown(
                        f"**{label}** "
                        f"<span style='color:{insight_color(estimate.value)};font-weight:bold'>"
                        f"{estimate.value:+.1f}</span>",
                        unsafe_allow_html=True,
                    )
                    st.write(estimate.insight)
                    st.caption(f"Source: {estimate.source}")

    def _render_budget_recommendation(self):
        state = self.controller.state
        if state.recommended_budget is None:
            return

        st.markdown("### 💰 Recommended Budget")
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Recommended", format_budget(state.recommended_budget, self.currency))
        with col2:
            st.metric("Your budget", format_budget(state.inputs.budget, self.currency))

        if state.budget_reasoning:
            with st.expander("Reasoning"):
                st.write(state.budget_reasoning)


class ResultsPanel:
    """Results step: frequency, coverage and the goal-specific KPI."""

    def render(self, metrics: DerivedMetrics, params: SliderParams):
        st.subheader("📊 Results")

        color = frequency_color(metrics.frequency)
        st.markdown(
            f"<div style='text-align:center'>"
            f"<div style='font-size:3.5rem;font-weight:bold;color:{color}'>{metrics.frequency:.1f}</div>"
            f"<div>effective contact frequency</div></div>",
            unsafe_allow_html=True,
        )
        st.info(frequency_description(metrics.frequency))

        display = metrics.display
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Coverage", f"{metrics.coverage:.1f}%")
        with col2:
            st.metric(display.label, f"{display.value:+.1f}%")
        with col3:
            st.metric("LTV Growth", f"{metrics.ltv_growth:+.1f}%")

        st.plotly_chart(build_parameter_chart(params), use_container_width=True)


class HistoryPanel:
    """Saved calculations of one account with Excel export."""

    def __init__(self, history_store: CalculationHistoryStore, owner: str):
        self.history_store = history_store
        self.owner = owner

    def render(self, limit: int = 20):
        with st.expander("🕑 Calculation History"):
            try:
                df = self.history_store.to_dataframe(limit=limit, owner=self.owner)
            except Exception as e:
                logger.error(f"Failed to load calculation history: {str(e)}")
                st.warning("⚠️ Calculation history is unavailable.")
                return

            if df.empty:
                st.write("No saved calculations yet.")
                return

            st.dataframe(df.drop(columns=['record_id', 'owner']), use_container_width=True, hide_index=True)

            if len(df) > 1:
                st.plotly_chart(build_history_chart(df), use_container_width=True)

            buffer = io.BytesIO()
            self.history_store.export_to_excel(buffer, owner=self.owner)
            st.download_button(
                "📥 Download as Excel",
                data=buffer.getvalue(),
                file_name="calculation_history.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )


def render_step_indicator(current: WizardStep):
    """Show the three wizard steps with the current one highlighted."""
    steps: List[Any] = [
        (WizardStep.BRAND, "1. Brand"),
        (WizardStep.PARAMS, "2. Parameters"),
        (WizardStep.RESULTS, "3. Results"),
    ]
    columns = st.columns(len(steps))
    for column, (step, label) in zip(columns, steps):
        with column:
            if step == current:
                st.markdown(f"**▶ {label}**")
            else:
                st.markdown(label)
