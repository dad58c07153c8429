"""
Ingestion: text extraction, chunking and embedding into the vector store.

This module is responsible for the ETL-like pipeline that turns uploaded
files (PDF, DOCX, TXT, Markdown) into stored documents whose chunks are
embedded and indexed.
"""
