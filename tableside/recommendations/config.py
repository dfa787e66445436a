"""
Scoring configuration.

The four factor weights sum to 1.0 so a total score stays in [0, 1].
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class ScoringConfig:
    flavor_weight: float = 0.40
    cuisine_weight: float = 0.25
    spice_weight: float = 0.20
    novelty_weight: float = 0.15
    unfamiliar_cuisine_base: float = float(os.getenv("TABLESIDE_UNFAMILIAR_CUISINE_BASE", "0.4"))
    spice_under_penalty: float = 0.5
    spice_over_penalty: float = 1.5
    alternatives_count: int = int(os.getenv("TABLESIDE_ALTERNATIVES_COUNT", "3"))
    cache_ttl_seconds: float = float(os.getenv("TABLESIDE_CACHE_TTL", "300"))

    @property
    def weights(self) -> dict[str, float]:
        return {
            "flavor": self.flavor_weight,
            "cuisine": self.cuisine_weight,
            "spice": self.spice_weight,
            "novelty": self.novelty_weight,
        }


DEFAULT_SCORING_CONFIG = ScoringConfig()
