"""Core puzzle primitives (board transformations and session events).

Kept free of FastAPI and network concerns so it can be reused by the session,
the API routes, and tests.
"""
