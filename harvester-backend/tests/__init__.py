"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/conftest.py - Shared pytest fixtures (temporary SQLite store, id snapshots, fake API client)
- tests/test_ingestion.py - Batch scheduler state machine
- tests/test_api.py - Admin API routes via FastAPI TestClient
- remaining modules - one per component

SQLite runs against temporary files; the Playliner API is replaced by fakes or
httpx.MockTransport, and Redis by an in-memory publisher stub.
"""
