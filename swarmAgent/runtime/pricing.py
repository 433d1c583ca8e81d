"""Model pricing - USD cost of a specialist call.

Prices are per million tokens, split into input and output. Model ids are
matched exactly first, then by the longest known prefix (so
``openai/gpt-4o-mini-2024-07-18`` is priced as ``openai/gpt-4o-mini``); ids
with no match use ``DEFAULT_PRICE``.
"""

from __future__ import annotations

from typing import Dict, NamedTuple, Optional

from swarmAgent.schema import Usage


class ModelPrice(NamedTuple):
    input: float
    output: float


DEFAULT_PRICE = ModelPrice(0.075, 0.075)

MODEL_PRICES: Dict[str, ModelPrice] = {
    "openai/gpt-4o": ModelPrice(5.0, 15.0),
    "openai/gpt-4o-mini": ModelPrice(0.15, 0.6),
    "anthropic/claude-3.5-sonnet": ModelPrice(3.0, 15.0),
    "anthropic/claude-3-haiku": ModelPrice(0.25, 1.25),
    "google/gemini-pro-1.5": ModelPrice(1.25, 5.0),
    "google/gemini-flash-1.5": ModelPrice(0.075, 0.075),
    "meta-llama/llama-3.1-8b-instruct": ModelPrice(0.1, 0.1),
    "mistralai/mixtral-8x7b-instruct": ModelPrice(0.24, 0.24),
    "mistralai/codestral-latest": ModelPrice(0.2, 0.6),
}


def price_for(model_id: Optional[str], prices: Optional[Dict[str, ModelPrice]] = None) -> ModelPrice:
    prices = MODEL_PRICES if prices is None else prices
    if not model_id:
        return DEFAULT_PRICE
    if model_id in prices:
        return prices[model_id]

    # Bare ids ("gpt-4o") match the provider-qualified entry too
    candidates = [
        key for key in prices
        if model_id.startswith(key) or model_id.startswith(key.split("/", 1)[-1])
    ]
    if not candidates:
        return DEFAULT_PRICE
    return prices[max(candidates, key=len)]


def calculate_cost(model_id: Optional[str], usage: Usage, prices: Optional[Dict[str, ModelPrice]] = None) -> float:
    """USD cost of ``usage`` on ``model_id``."""
    price = price_for(model_id, prices)
    return (usage.input_tokens * price.input + usage.output_tokens * price.output) / 1_000_000


__all__ = ["ModelPrice", "MODEL_PRICES", "DEFAULT_PRICE", "price_for", "calculate_cost"]
