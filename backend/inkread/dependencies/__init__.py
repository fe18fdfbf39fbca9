"""FastAPI dependencies shared across routers (caller identity)."""
