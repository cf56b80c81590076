"""Strategy configuration and the scan cycle"""

from .config import StrategyConfig, RiskProfileSettings, ReallocationGas

__all__ = ["StrategyConfig", "RiskProfileSettings", "ReallocationGas"]
