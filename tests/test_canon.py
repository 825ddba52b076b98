"""
Tests for governance_engine/canon.py canonical hashing.
"""

import pytest

from governance_engine.canon import canonical_bytes, canonical_json, compute_input_hash
from governance_engine.errors import ScenarioPackError


class TestCanonicalJson:
    """Test the canonicalization rule."""

    def test_keys_sorted_at_every_level(self):
        data = {"b": 1, "a": {"z": 1, "y": [{"d": 1, "c": 2}]}}
        assert canonical_json(data) == '{"a":{"y":[{"c":2,"d":1}],"z":1},"b":1}'

    def test_compact_separators(self):
        assert canonical_json({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_non_ascii_escaped(self):
        assert canonical_json({"k": "é"}) == '{"k":"\\u00e9"}'

    def test_int_and_float_render_differently(self):
        assert canonical_json({"x": 1}) != canonical_json({"x": 1.0})

    def test_array_order_preserved(self):
        assert canonical_json([3, 1, 2]) == "[3,1,2]"

    def test_nan_rejected(self):
        with pytest.raises(ScenarioPackError):
            canonical_json({"x": float("nan")})

    def test_infinity_rejected(self):
        with pytest.raises(ScenarioPackError):
            canonical_json({"x": float("inf")})

    def test_unserializable_rejected(self):
        with pytest.raises(ScenarioPackError):
            canonical_json({"x": object()})

    def test_bytes_are_utf8_of_json(self):
        assert canonical_bytes({"a": 1}) == b'{"a":1}'


class TestComputeInputHash:
    """Test pack fingerprints."""

    def test_known_digests(self):
        assert compute_input_hash({}) == (
            "44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
        )
        assert compute_input_hash({"b": [1, 2, {"c": None}], "a": 1}) == (
            "ca68b9d1882fc808ce81fa1404b255c515a64442153e0287ff42453279adabf5"
        )

    def test_stable_across_calls(self, causal_pack):
        assert compute_input_hash(causal_pack) == compute_input_hash(causal_pack)

    def test_insertion_order_irrelevant(self):
        p1 = {"version": "1", "scenarios": [{"a": 1, "b": 2}]}
        p2 = {"scenarios": [{"b": 2, "a": 1}], "version": "1"}
        assert compute_input_hash(p1) == compute_input_hash(p2)

    def test_nested_field_change_changes_hash(self, causal_pack):
        """A differing nested scenario field must change the hash."""
        import copy

        changed = copy.deepcopy(causal_pack)
        changed["scenarios"][0]["dataRegime"]["sampleSize"] = 4999
        assert compute_input_hash(changed) != compute_input_hash(causal_pack)

    def test_hex_format(self, policy_pack):
        digest = compute_input_hash(policy_pack)
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)
