# Middleware package init
"""
Visitas API: Middleware Package
===============================

Middleware Chain:
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    Request ID runs first so the logging middleware and the exception
    handlers can read the correlation ID from request_id_var.
"""
