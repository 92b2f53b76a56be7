"""
Main entry point for the Effective Frequency Calculator application.
"""
import logging
import streamlit as st
from typing import Optional

# Set up logging
logger = logging.getLogger(__name__)
from config.settings import config_manager
from data.history_store import CalculationHistoryStore
from ui.components import BrandInputForm, ParameterPanel, ResultsPanel, HistoryPanel, render_step_indicator
from business_logic.ai_analyzer import AIParameterAnalyzer
from business_logic.calculator_controller import CalculatorController, WizardStep


def is_user_authenticated() -> bool:
    """True when the Streamlit session has a logged-in user."""
    try:
        return bool(st.user.is_logged_in)
    except (AttributeError, KeyError):
        return False


def current_user_id() -> Optional[str]:
    """Account identifier of the logged-in user, None when unavailable."""
    if not is_user_authenticated():
        return None
    try:
        return st.user.email or None
    except (AttributeError, KeyError):
        return None


def create_controller(config) -> CalculatorController:
    """Build the session controller; AI mode is left off when no API key is configured."""
    analyzer = None
    if config_manager.is_ai_available():
        try:
            analyzer = AIParameterAnalyzer(config=config)
        except Exception as e:
            logger.error(f"AI analyzer unavailable: {str(e)}")

    history_store = CalculationHistoryStore(config.history_file)
    return CalculatorController(analyzer=analyzer, history_store=history_store)


def main():
    """Main application entry point."""
    st.set_page_config(
        page_title="Effective Frequency Calculator",
        page_icon="📊",
        layout="wide",
    )

    st.title("🎯 Effective Frequency Calculator")
    st.markdown("Estimate the optimal advertising contact frequency and its expected effect")

    config = config_manager.load_config()

    if 'controller' not in st.session_state:
        st.session_state['controller'] = create_controller(config)
    controller: CalculatorController = st.session_state['controller']

    if controller.analyzer is None:
        st.caption("ℹ️ AI analysis is not configured; parameters can be set manually.")

    render_step_indicator(controller.state.wizard_step)
    st.divider()

    step = controller.state.wizard_step

    if step == WizardStep.BRAND:
        form = BrandInputForm(controller, currency=config.default_currency)
        if form.render() and controller.go_to_step(WizardStep.PARAMS):
            st.rerun()

    elif step == WizardStep.PARAMS:
        ParameterPanel(controller, currency=config.default_currency).render()

        col1, col2 = st.columns(2)
        with col1:
            if st.button("⬅️ Back", use_container_width=True):
                controller.go_to_step(WizardStep.BRAND)
                st.rerun()
        with col2:
            if st.button("Calculate ➡️", type="primary", use_container_width=True):
                if controller.go_to_step(WizardStep.RESULTS):
                    st.rerun()

    else:
        metrics = controller.compute_metrics()
        ResultsPanel().render(metrics, controller.state.params)

        owner = current_user_id()
        if owner is not None and controller.save_calculation(is_user_authenticated, owner):
            st.toast("✅ Calculation saved to history")

        col1, col2 = st.columns(2)
        with col1:
            if st.button("⬅️ Adjust parameters", use_container_width=True):
                controller.go_to_step(WizardStep.PARAMS)
                st.rerun()
        with col2:
            if st.button("🔄 Start over", use_container_width=True):
                controller.reset()
                st.rerun()

    owner = current_user_id()
    if controller.history_store is not None and owner is not None:
        HistoryPanel(controller.history_store, owner).render()


if __name__ == "__main__":
    main()
