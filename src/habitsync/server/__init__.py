"""Server module - FastAPI sync boundary and SQLite change ledger."""
