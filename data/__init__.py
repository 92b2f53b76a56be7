# Data layer for the frequency calculator

from .history_store import CalculationHistoryStore

__all__ = ['CalculationHistoryStore']
