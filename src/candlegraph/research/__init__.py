"""Historical signal research.

Scores signal-script output with the trade outcome simulator: DCA
effectiveness per direction and the EV effect of a volatility forecast gate.
"""

from candlegraph.research.models import DcaAnalysis, GateAnalysis
from candlegraph.research.runner import (
    collect_signals,
    dates_to_ms,
    run_dca_analysis,
    run_dca_analysis_cli,
    run_volatility_gate_analysis,
    run_volatility_gate_analysis_cli,
)

__all__ = [
    "DcaAnalysis",
    "GateAnalysis",
    "collect_signals",
    "dates_to_ms",
    "run_dca_analysis",
    "run_dca_analysis_cli",
    "run_volatility_gate_analysis",
    "run_volatility_gate_analysis_cli",
]
