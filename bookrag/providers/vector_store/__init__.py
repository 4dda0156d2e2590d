"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  Each book's chunks live
in their own collection on disk under CHROMADB_PERSIST_DIR (default:
./data/chromadb).

To swap ChromaDB for another vector database, create a new class
implementing IVectorStoreProvider and register it in bookrag/main.py.
"""

from bookrag.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
