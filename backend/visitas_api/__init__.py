"""
Visitas API: Application Package Initializer
============================================

What: Marks the `visitas_api` directory as a Python package.
Who:  Used by uvicorn (`uvicorn visitas_api.main:app`) and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Visit operations)     │  ← presence checks, outcome mapping
    ├─────────────────────────────────────┤
    │   Stored Procedure Client (CALL)    │  ← one round trip per request
    ├─────────────────────────────────────┤
    │   Connection Holder (engine state)  │  ← populated after startup probe
    └─────────────────────────────────────┘

    The database owns every rule about visits. This package only routes,
    checks that required fields are present, and translates procedure results.
"""

__version__ = "1.0.0"
