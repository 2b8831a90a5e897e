"""
Repo-level database operations for the booking service.

Runtime access lives in `services.booking.app.repository`. This package holds:
- Alembic migrations config
- Deterministic catalog seed CLI
"""
