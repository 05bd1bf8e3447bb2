"""
SpecDate Backend — Application Package Initializer
===================================================

What: Marks the `app` directory as a Python package.
Who:  Imported by uvicorn (`app.main:app`), Alembic, pytest and the API client.

Layering:

    ┌─────────────────────────────────────┐
    │   Routes (auth, specs, rounds, ...) │  ← HTTP concerns, envelopes, status codes
    ├─────────────────────────────────────┤
    │   Services (spec, round, media ...) │  ← business rules, notifications
    ├─────────────────────────────────────┤
    │   Models (SQLAlchemy) / Schemas     │  ← tables / API contracts
    ├─────────────────────────────────────┤
    │   Database (async sessions)         │  ← one session per request
    └─────────────────────────────────────┘

    Push (Expo) and broadcast (Pusher) gateways hang off the notification
    service and never fail the request that triggered them.
"""

__version__ = "1.0.0"
