"""Stock evaluation tools."""

from vnstock_eval.tools.consensus import analyst_consensus
from vnstock_eval.tools.evaluate import evaluate
from vnstock_eval.tools.screen import screen
from vnstock_eval.tools.technicals import technicals

__all__ = [
    "analyst_consensus",
    "evaluate",
    "screen",
    "technicals",
]
