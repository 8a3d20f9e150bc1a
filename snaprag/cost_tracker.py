"""Token usage, latency, and cost accounting for language-model calls."""

from dataclasses import dataclass
from typing import Optional

# USD per 1M tokens
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o":      {"input": 2.50, "output": 10.00},
}


@dataclass
class CostRecord:
    model: str
    purpose: str = ""           # "answer", "tags" or "caption"
    input_tokens: int = 0
    output_tokens: int = 0
    latency: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def cost_usd(self) -> Optional[float]:
        pricing = MODEL_PRICING.get(self.model)
        if not pricing:
            return None
        return (
            self.input_tokens  / 1_000_000 * pricing["input"] +
            self.output_tokens / 1_000_000 * pricing["output"]
        )

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "purpose": self.purpose,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": round(self.cost_usd, 6) if self.cost_usd is not None else None,
            "latency_s": round(self.latency, 3) if self.latency is not None else None,
        }

    def __str__(self) -> str:
        cost    = f"${self.cost_usd:.6f}" if self.cost_usd is not None else "N/A"
        latency = f"{self.latency:.3f}s" if self.latency is not None else "N/A"
        return (
            f"{self.purpose or 'call'}: "
            f"input={self.input_tokens} tok  "
            f"output={self.output_tokens} tok  "
            f"total={self.total_tokens} tok  "
            f"cost={cost}  "
            f"latency={latency}"
        )
