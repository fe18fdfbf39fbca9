"""
InkRead Backend — Pydantic Request/Response Schemas
=====================================================

Wire format is camelCase (`resetAt`, `requiresAuth`, `deletedCount`) to match
the frontend; Python attributes stay snake_case. See `common.CamelModel`.
"""
