"""
pytest suite for the Storefront order API backend.

Test categories:
- Unit tests: status policy, labels, models, auth and config
- Integration tests: order service against in-memory SQLite
- API tests: full FastAPI app over httpx
"""
