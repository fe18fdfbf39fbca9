"""
InkRead Backend
================

OCR service behind the InkRead web app: signed-in users get a small daily
credit allowance, guests get one free try per IP.

Layers:

    ┌─────────────────────────────────────┐
    │     Routes + Dependencies (HTTP)    │  ← caller identity, status codes
    ├─────────────────────────────────────┤
    │          Services (Logic)           │  ← gate, intake, OCR, ledger, cleanup
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database + Blob store (Persistence)│  ← async sessions, upload bucket
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
