"""Run the quotes API locally.

Configuration comes from QUOTES_* environment variables.
Run with: python demo_app.py

Then create a quote:

    curl -i -X POST http://localhost:8000/api/v1/quotes \\
        -H "Authorization: Bearer dev-token" \\
        -H "Idempotency-Key: idem-123" \\
        -H "Content-Type: application/json" \\
        -d '{"documentId": "DOC-3", "amount": 30, "currency": "clp"}'

Repeating the same command replays the stored response
(``Idempotency-Status: replayed``); changing the amount under the same key
returns 409 IDEMPOTENCY_KEY_REUSE_CONFLICT.
"""

import os

import uvicorn

from idempotent_quotes.app import create_app
from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.observability.logging import configure_logging

config = QuotesConfig.from_env()
configure_logging(level=config.log_level, json_output=config.json_logs)

app = create_app(config)


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level=config.log_level.lower(),
    )
