# Routes package init
"""
FolioScan Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles one resource; all but health require a
       bearer token and live under /api/v1.

Route Inventory:
    - folders.py: POST   /api/v1/folders
                  GET    /api/v1/folders/{folderId}        (root = top level)
                  PUT    /api/v1/folders/{id}
                  DELETE /api/v1/folders/{id}              (recursive)
    - notes.py:   POST   /api/v1/notes                     (multipart upload)
                  GET    /api/v1/folders/{folderId}/notes
                  PUT    /api/v1/notes/{id}
                  DELETE /api/v1/notes/{id}
                  GET    /api/v1/notes/{id}/image          (streamed proxy)
    - search.py:  GET    /api/v1/search?q=
    - health.py:  GET    /health

Routes stay thin: decode the request, call the service, shape the response.
"""
