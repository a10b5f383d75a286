"""Тесты для побитового кодека half-float и аффинных примитивов."""

import math

import numpy as np
import pytest
import torch
import hypothesis.strategies as st
from hypothesis import given, settings
from mpmath import mp

from dyntensor import (
    affine_decode,
    affine_encode,
    decode_f16,
    encode_f16,
    f16_to_f32,
    f32_to_f16,
)
from tests.helpers import half_ulp_mp, numpy_half_bits, truncate_to_half

mp.dps = 50


@pytest.mark.parametrize(
    "value,bits",
    [
        (0.0, 0x0000),
        (-0.0, 0x8000),
        (1.0, 0x3C00),
        (-1.0, 0xBC00),
        (2.0, 0x4000),
        (-2.0, 0xC000),
        (0.5, 0x3800),
        (0.1, 0x2E66),
        (65504.0, 0x7BFF),
        (2.0 ** -14, 0x0400),
    ],
)
def test_f32_to_f16_known_patterns(value, bits):
    assert f32_to_f16(value) == bits


@pytest.mark.parametrize("value", [0.0, 1.0, 2.0, 0.5, -0.25, 1024.0, 65504.0, 2.0 ** -14])
def test_exact_values_round_trip(value):
    """Точно представимые в half значения проходят кодек без потерь."""
    assert f16_to_f32(f32_to_f16(value)) == value
    assert f32_to_f16(value) == numpy_half_bits([value])[0]


def test_negative_zero_keeps_sign():
    assert math.copysign(1.0, f16_to_f32(f32_to_f16(-0.0))) == -1.0


def test_mantissa_is_truncated_not_rounded():
    # 1 + 2^-10 * 0.75 округлилось бы вверх, усечение оставляет 1.0
    value = 1.0 + 0.75 * 2.0 ** -10
    assert f32_to_f16(value) == 0x3C00
    assert numpy_half_bits([value])[0] == 0x3C01
    # Для отрицательных чисел усечение идёт к нулю, а не к -inf
    assert f16_to_f32(f32_to_f16(-value)) == -1.0


def test_decode_known_patterns():
    assert f16_to_f32(0x2E66) == 0.0999755859375
    assert f16_to_f32(0x7BFF) == 65504.0
    assert f16_to_f32(0x0400) == 2.0 ** -14
    assert f16_to_f32(0xC000) == -2.0


def test_decode_saturated_pattern_is_rebiased():
    # экспонента 31 переносится как обычная: 2^16, а не inf
    assert f16_to_f32(0x7C00) == 65536.0
    assert f16_to_f32(0xFC00) == -65536.0
    assert f16_to_f32(f32_to_f16(100000.0)) == 65536.0
    assert f16_to_f32(f32_to_f16(float("-inf"))) == -65536.0


def test_decode_uses_low_16_bits_only():
    assert f16_to_f32(0x13C00) == 1.0


def test_vectorized_codec_shapes_and_dtypes():
    values = torch.tensor([1.0, -2.0, 0.5, 0.0], dtype=torch.float32)
    bits = encode_f16(values)
    assert bits.dtype == torch.int16
    assert bits.shape == values.shape

    decoded = decode_f16(bits)
    assert decoded.dtype == torch.float32
    assert torch.equal(decoded, values)


def test_vectorized_codec_accepts_float64():
    values = torch.tensor([1.5, -3.25], dtype=torch.float64)
    assert torch.equal(decode_f16(encode_f16(values)), values.to(torch.float32))


def test_vectorized_codec_empty():
    empty = torch.empty(0, dtype=torch.float32)
    assert encode_f16(empty).numel() == 0
    assert decode_f16(encode_f16(empty)).numel() == 0


def test_scalar_and_vector_paths_agree():
    values = [0.1, -7.3, 300.7, 1e-3, -65000.0, 1e-6, 1e9]
    vector = encode_f16(torch.tensor(values, dtype=torch.float32))
    scalar = [f32_to_f16(v) for v in values]
    assert [int(b) & 0xFFFF for b in vector] == scalar


@settings(max_examples=300, deadline=None)
@given(st.floats(min_value=2.0 ** -14, max_value=65504.0, width=32), st.booleans())
def test_round_trip_error_below_one_ulp(x, negative):
    """decode(encode(x)) — это x, усечённый до 11 значащих бит."""
    if negative:
        x = -x
    y = f16_to_f32(f32_to_f16(x))

    assert y == float(truncate_to_half(np.array([x]))[0])
    assert math.copysign(1.0, y) == math.copysign(1.0, x)
    assert abs(y) <= abs(x)
    assert abs(mp.mpf(x) - mp.mpf(y)) < half_ulp_mp(x)


@settings(max_examples=300, deadline=None)
@given(st.integers(min_value=0, max_value=0xFFFF))
def test_normal_half_patterns_match_numpy(bits):
    """Все нормальные half-float шаблоны совпадают с numpy в обе стороны."""
    exp = (bits >> 10) & 0x1F
    if exp == 0 or exp == 31:
        return
    reference = float(np.array([bits], dtype=np.uint16).view(np.float16)[0])
    assert f16_to_f32(bits) == reference
    assert f32_to_f16(reference) == bits


def test_affine_encode_truncates_toward_zero():
    values = torch.tensor([2.6, -2.6, 0.4, -0.4], dtype=torch.float32)
    codes = affine_encode(values, 1.0)
    assert codes.dtype == torch.int8
    assert codes.tolist() == [2, -2, 0, 0]


def test_affine_encode_nearest():
    values = torch.tensor([2.6, -2.6, 2.5, 3.5], dtype=torch.float32)
    assert affine_encode(values, 1.0, rounding="nearest").tolist() == [3, -3, 2, 4]


def test_affine_encode_zero_point_and_clamp():
    values = torch.tensor([1.3, 100.0, -100.0], dtype=torch.float32)
    assert affine_encode(values, 0.5, zero_point=10).tolist() == [12, 127, -128]


def test_affine_encode_nan_maps_to_zero_point():
    values = torch.tensor([float("nan")], dtype=torch.float32)
    assert affine_encode(values, 1.0, zero_point=5).tolist() == [5]


def test_affine_encode_unknown_rounding():
    with pytest.raises(ValueError, match="unknown rounding mode"):
        affine_encode(torch.ones(2), 1.0, rounding="up")


def test_affine_decode():
    codes = torch.tensor([12, 127, -128], dtype=torch.int8)
    decoded = affine_decode(codes, 0.5, zero_point=10)
    assert decoded.dtype == torch.float32
    assert decoded.tolist() == [1.0, 58.5, -69.0]
