"""Core idempotency logic: the decision engine and the create-quote orchestrator."""

from idempotent_quotes.core.decision import Conflict, Decision, Proceed, Replay, check, decide
from idempotent_quotes.core.orchestrator import CreateQuoteResult, QuoteOrchestrator

__all__ = [
    "Conflict",
    "Decision",
    "Proceed",
    "Replay",
    "check",
    "decide",
    "CreateQuoteResult",
    "QuoteOrchestrator",
]
