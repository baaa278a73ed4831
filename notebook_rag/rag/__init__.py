"""RAG (Retrieval-Augmented Generation) core components.

This package contains modules for:
- Note loading (markdown and plain text)
- Word-window chunking with overlap
- Embedding backends
- Nearest-neighbour vector indexes
- Chunk storage and the retrieval service
- Context assembly with full-context fallback
"""
