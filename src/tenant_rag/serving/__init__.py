"""
Serving — FastAPI application for the tenant RAG core.

Exposes document upload/list/delete and streaming or buffered queries
over HTTP.
"""
