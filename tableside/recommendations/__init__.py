"""
Recommendation engine.

Responsibilities:
- Narrow a dish set to what a diner (or a whole table) can safely eat.
- Score and rank candidates using deterministic, explainable heuristics.
- Return structured recommendations ready for API serialisation.
"""
