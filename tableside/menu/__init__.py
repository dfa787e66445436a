"""
Dish catalog access.

Responsibilities:
- Define the canonical Dish schema with derived allergen and dietary facts.
- Expose a read-only catalog (list available dishes, look one up by id).
- Cache dish lookups consistently across catalog updates.
"""
