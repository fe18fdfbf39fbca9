# Middleware package init
"""
InkRead Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    Rate limiting runs first so rejected requests cost nothing else. The
    request ID is set before the access log line that carries it.
"""
