"""
Per-table session state.

Responsibilities:
- Own the lifecycle of each table's session (create, mutate, archive).
- Keep customers and their preferences isolated per session.
- Resolve references ("it", "they") against the session's conversation history.
"""
