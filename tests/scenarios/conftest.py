"""Fixtures shared by the HTTP scenarios."""

import pytest
from fastapi.testclient import TestClient

from idempotent_quotes.app import create_app

QUOTES_PATH = "/api/v1/quotes"


@pytest.fixture
def app(config, storage, prometheus_metrics):
    return create_app(config, storage=storage, metrics=prometheus_metrics)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def post_quote(client, auth_headers):
    """POST a quote with the given key and body; extra headers override defaults."""

    def _post(key=None, body=None, headers=None):
        request_headers = dict(auth_headers)
        if key is not None:
            request_headers["Idempotency-Key"] = key
        request_headers.update(headers or {})
        payload = body if body is not None else {"documentId": "DOC-3", "amount": 30, "currency": "clp"}
        return client.post(QUOTES_PATH, json=payload, headers=request_headers)

    return _post
