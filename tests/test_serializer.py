"""Tests for limiter state serialization."""

import json

import pytest

from ratekeeper.policy.fixed_window import FixedWindowCounter
from ratekeeper.policy.rate import Rate
from ratekeeper.policy.sliding_window import SlidingWindowCounter
from ratekeeper.policy.token_bucket import TokenBucket
from ratekeeper.storage.serializer import dumps_state, loads_state, state_from_dict, state_to_dict


class TestStateSerialization:
    """Tests for the tagged JSON encoding."""

    def test_type_tag_written(self):
        data = state_to_dict(FixedWindowCounter("api", 1, 60.0, 60, 5))
        assert data["type"] == "fixed_window"
        assert data["hit_count"] == 1

    def test_token_bucket_rate_is_nested(self):
        payload = json.loads(dumps_state(TokenBucket("api", 5, Rate(60, 3), 2, 10.5)))
        assert payload["type"] == "token_bucket"
        assert payload["rate"] == {"interval": 60, "amount": 3}

    @pytest.mark.parametrize(
        "state",
        [
            TokenBucket("tb", 5, Rate.per_minute(3), 2, 1000.0000001),
            FixedWindowCounter("fw", 3, 960.0, 60, 10),
            SlidingWindowCounter("sw", 4, 7, 1060.123, 60),
        ],
    )
    def test_each_policy_restores_its_class(self, state):
        restored = loads_state(dumps_state(state))
        assert type(restored) is type(state)
        assert restored == state

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown state type"):
            state_from_dict({"type": "leaky_bucket", "id": "x"})

    def test_missing_type(self):
        with pytest.raises(ValueError):
            state_from_dict({"id": "x"})
