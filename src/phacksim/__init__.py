"""
phacksim - false-positive inflation under flexible analysis.

Generate null data, try a fixed battery of analyses, count how often
anything comes out significant.
"""

from phacksim.battery import run_battery
from phacksim.config import ConfigError, SimulationConfig
from phacksim.data import generate
from phacksim.regression import Decision, evaluate
from phacksim.simulation import SimulationResult, run_baseline, run_simulation

__version__ = "0.1.0"
__all__ = [
    "ConfigError",
    "Decision",
    "SimulationConfig",
    "SimulationResult",
    "__version__",
    "evaluate",
    "generate",
    "run_baseline",
    "run_battery",
    "run_simulation",
]
