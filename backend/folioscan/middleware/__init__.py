# Middleware package init
"""
FolioScan Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    - Request ID runs first so every later log line, including the access
      log entry and error bodies, carries the same correlation id.
    - The access log sees the final status code and total duration.

Authentication is not middleware: it is a route dependency
(folioscan.auth.get_current_principal), so /health stays public.
"""
