"""
DOrSU Connect - Knowledge backend for the DOrSU Connect assistant
=================================================================

Retrieval-augmented question answering over a JSON dataset about
Davao Oriental State University:

- ingestion: Dataset chunking and keyword extraction
- indexing: Embeddings, the chromadb knowledge store and manifests
- rag: Query understanding, hybrid search, context, caching and chat
- schedule: Academic calendar events
- refresh: Knowledge base rebuilds and auto refresh
- auth: Accounts and JWT login
- api / cli: FastAPI application and Typer commands
"""

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__license__",
    "shared",
    "ingestion",
    "indexing",
    "rag",
    "schedule",
    "refresh",
    "auth",
    "api",
    "cli",
]
