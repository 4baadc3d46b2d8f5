"""Core gameplay primitives (board, rules, and events).

Kept free of FastAPI and LLM concerns so it can be reused by API routes, scripts, and tests.
"""
