"""
SpecDate Backend — Middleware Package
=======================================

Middleware Chain (request direction):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    Rate limiting runs first so rejected requests cost nothing. The request
    ID is set before logging so every access line carries it.
"""
