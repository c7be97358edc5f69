"""
finflow_kernel -- Shared infrastructure for the financial event pipeline.

Structured logging, the typed exception hierarchy, the injectable clock,
the ISO 4217 currency registry and the SQLAlchemy base/engine helpers.

Architecture:
    The kernel never imports from finflow_config or finflow_ingestion.
"""
