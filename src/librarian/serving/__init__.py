"""
Serving: FastAPI application for the librarian core.

Exposes search, upload, document lookup and index maintenance over HTTP.
"""
