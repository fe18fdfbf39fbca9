# Routes package init
"""
InkRead Backend — API Routes Package
======================================

Route Inventory:
    - access.py:     GET  /api/access/check
    - process.py:    POST /api/process
    - analytics.py:  POST /api/analytics/track
    - cleanup.py:    POST /api/cleanup          (bearer token)
    - health.py:     GET  /health

Routes stay thin: resolve the caller, read the request, call one service.
"""
