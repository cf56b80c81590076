"""Monte Carlo simulation engine"""

from .sampling import BoxMullerSampler
from .monte_carlo import MonteCarloEngine, LPMonteCarloSimulator, LendingMonteCarloSimulator

__all__ = ["BoxMullerSampler", "MonteCarloEngine", "LPMonteCarloSimulator", "LendingMonteCarloSimulator"]
