# Services package init
"""
FolioScan Backend — Services Layer
===================================

What:  Business logic between the routes (HTTP) and the store / blob backends.
How:   Services receive their collaborators through their constructors; the
       whole graph is built once by services/container.py.

Service Inventory:
    - ResourceRepository: owner-scoped CRUD over folders and notes
    - BlobStore (abstract): binary objects; Local / Drive / Link backends
    - CascadeDeleteEngine: recursive removal of a folder subtree
    - FolderService / NoteService: the operation surface used by routes
    - SearchService: concurrent name search over both collections
"""
