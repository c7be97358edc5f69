"""
finflow_ingestion -- Financial event ingestion pipeline.

Accepts heterogeneous transaction payloads from webhooks, files and API
calls, validates them, drops duplicates, normalizes amounts into the base
currency, classifies each event's business intent and hands the result to
a persistence collaborator.

Architecture:
    finflow_ingestion/ is a top-level package. It imports from
    finflow_kernel/ and finflow_config/; neither imports from it.
"""
