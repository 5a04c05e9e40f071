"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Text extraction from files and web pages
- Sentence-aware chunking with overlap
- Sequential embedding generation
- Cosine similarity search
- The ingest and query pipeline
"""
