"""Tests for snaprag.cost_tracker: no mocking needed."""

import pytest

from snaprag.cost_tracker import CostRecord


class TestCostRecord:
    def test_cost_for_known_model(self):
        record = CostRecord(model="gpt-4o-mini", input_tokens=1_000_000, output_tokens=1_000_000)
        assert record.total_tokens == 2_000_000
        assert record.cost_usd == pytest.approx(0.75)

    def test_unknown_model_has_no_cost(self):
        record = CostRecord(model="local-llm", input_tokens=10)
        assert record.cost_usd is None
        assert "cost=N/A" in str(record)

    def test_to_dict_rounds(self):
        record = CostRecord(model="gpt-4o", purpose="answer", input_tokens=100, output_tokens=50, latency=0.12345)
        data = record.to_dict()
        assert data["purpose"] == "answer"
        assert data["total_tokens"] == 150
        assert data["latency_s"] == 0.123
        assert data["cost_usd"] == pytest.approx(0.00075)
