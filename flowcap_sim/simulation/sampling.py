#!/usr/bin/env python3
"""
Random draws for the Monte Carlo engine

Every draw goes through an injected numpy Generator so that a fixed seed gives
a fixed result. Normal draws use the Box-Muller transform.
"""

import math
from typing import Optional

import numpy as np


class BoxMullerSampler:
    """Seeded source of uniform, Bernoulli and Box-Muller normal draws"""

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    @classmethod
    def from_seed_sequence(cls, seed_sequence: np.random.SeedSequence) -> "BoxMullerSampler":
        return cls(rng=np.random.default_rng(seed_sequence))

    def random(self) -> float:
        return float(self.rng.random())

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()

    def bernoulli(self, probability: float) -> bool:
        return self.random() < probability

    def standard_normal(self) -> float:
        # 1 - U keeps the log argument in (0, 1]
        u1 = 1.0 - self.random()
        u2 = self.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def normal(self, mean: float, std: float) -> float:
        return mean + std * self.standard_normal()

    def standard_normals(self, size: int) -> np.ndarray:
        """Vectorised Box-Muller draws"""
        u1 = 1.0 - self.rng.random(size)
        u2 = self.rng.random(size)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
