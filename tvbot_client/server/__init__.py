"""Stub backend — FastAPI implementation of the client's backend contract.

WHY: Lets the client run locally and be tested end to end without the
hosted backend or Telegram.

HOW: app.py defines the FastAPI app; store.py keeps subjects in memory.
Serve it with ``tvbot-client serve-stub`` (uvicorn).
"""
