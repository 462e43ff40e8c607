"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- PDF text extraction
- Heading-anchored and fixed-size chunking
- Embedding acquisition with retry
- In-memory vector storage
- Similarity-ranked retrieval and prompt composition
"""
