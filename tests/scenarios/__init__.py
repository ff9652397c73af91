"""End-to-end scenarios for the quotes API.

Each scenario drives the FastAPI application over HTTP and checks one
aspect of idempotent quote creation: first creation and replay, payload
conflicts, concurrent duplicates, request guards and store outages.
"""
