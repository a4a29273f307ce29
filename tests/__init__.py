"""
Tests Package - Unit and integration tests for DOrSU Connect.
=============================================================

Test modules:
- test_ingestion: Keyword extraction and dataset chunking tests
- test_indexing: Embedding providers, knowledge store and manifest tests
- test_rag: Query analysis, hybrid search, context, cache and chat tests
- test_schedule: Calendar event filtering tests
- test_refresh: Knowledge base refresh tests
- test_auth: Login and token tests
- test_api: FastAPI route tests

Run tests with:
    pytest tests/
    pytest tests/ -v -m "not slow"
"""
