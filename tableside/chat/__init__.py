"""
Structured conversation input.

Responsibilities:
- Define the closed set of query intents and reference kinds the core accepts.
- Bind tagged references and record each turn in the session's history.
"""
