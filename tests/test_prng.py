"""
Tests for the seeded deterministic generator.
"""

import pytest

from governance_engine.prng import SeededGenerator, new_generator


class TestGoldenSequences:
    """Raw outputs must stay bit-identical across releases."""

    @pytest.mark.parametrize(
        "seed, expected",
        [
            (42, [2581720956, 1925393290, 3661312704]),
            (0, [1144304738, 1416247, 958946056]),
            (20260211, [273380713, 2204926365, 2302425022]),
        ],
    )
    def test_first_outputs(self, seed, expected):
        gen = SeededGenerator(seed)
        assert [gen.next_uint32() for _ in range(3)] == expected

    def test_float_is_uint_over_two_pow_32(self):
        gen = SeededGenerator(42)
        assert gen.next() == 2581720956 / 4294967296
        assert gen.next() == pytest.approx(0.448290558, abs=1e-8)


class TestGeneratorBehavior:
    def test_same_seed_same_sequence(self):
        assert SeededGenerator(7).take(50) == SeededGenerator(7).take(50)

    def test_different_seed_different_sequence(self):
        assert SeededGenerator(7).take(5) != SeededGenerator(8).take(5)

    def test_values_in_unit_interval(self):
        for value in SeededGenerator(123).take(1000):
            assert 0.0 <= value < 1.0

    def test_negative_seed_wraps_to_32_bits(self):
        assert SeededGenerator(-1).take(5) == SeededGenerator(0xFFFFFFFF).take(5)

    def test_draw_counter(self):
        gen = new_generator(1)
        gen.take(3)
        gen()
        assert gen.draws == 4

    @pytest.mark.parametrize("bad_seed", ["42", 4.2, None, True])
    def test_non_integer_seed_rejected(self, bad_seed):
        with pytest.raises(TypeError):
            SeededGenerator(bad_seed)
