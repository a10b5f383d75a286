from __future__ import annotations

"""dyntensor._core
===================
Числовые примитивы, используемые во всём пакете dyntensor.

* encode_f16 / decode_f16 — побитовый кодек float32 <-> half-float
* f32_to_f16 / f16_to_f32 — скалярные обёртки над кодеком
* affine_encode / affine_decode — аффинное квантование в int8 и обратно

Все векторные функции работают покомпонентно на 1-D `torch` тензорах.
Переинтерпретация битов делается через `Tensor.view(dtype)` между типами
одинаковой ширины, это определено для любого битового шаблона.
"""

import torch

__all__ = [
    "F16_SIGN",
    "F16_INF",
    "INT8_MIN",
    "INT8_MAX",
    "ROUNDING_MODES",
    "encode_f16",
    "decode_f16",
    "f32_to_f16",
    "f16_to_f32",
    "affine_encode",
    "affine_decode",
    "narrow_f32",
]

F16_SIGN = 0x8000
F16_INF = 0x7C00
INT8_MIN = -128
INT8_MAX = 127

# "trunc" — отбрасывание дробной части (поведение эталона),
# "nearest" — округление к ближайшему чётному.
ROUNDING_MODES = ("trunc", "nearest")

_F32_BIAS = 127
_F16_BIAS = 15


def _to_unsigned(bits: torch.Tensor, width: int) -> torch.Tensor:
    """Знаковые биты -> беззнаковое значение в int64."""
    return bits.to(torch.int64) & ((1 << width) - 1)


def _to_signed(bits: torch.Tensor, width: int, dtype: torch.dtype) -> torch.Tensor:
    """Беззнаковое значение в int64 -> тот же битовый шаблон в `dtype`."""
    top = 1 << (width - 1)
    return torch.where(bits >= top, bits - (1 << width), bits).to(dtype)


def encode_f16(values: torch.Tensor) -> torch.Tensor:
    """float32 -> битовые шаблоны half-float (int16).

    Мантисса усекается (round toward zero), субнормальные числа
    не поддерживаются: слишком маленькие значения становятся нулём со знаком,
    слишком большие (а также inf и NaN) — бесконечностью со знаком.
    """
    if values.dtype != torch.float32:
        values = values.to(torch.float32)

    bits = _to_unsigned(values.contiguous().view(torch.int32), 32)
    sign = (bits >> 16) & F16_SIGN
    mant = bits & 0x7FFFFF
    exp = ((bits >> 23) & 0xFF) - _F32_BIAS + _F16_BIAS

    packed = sign | (exp.clamp(0, 31) << 10) | (mant >> 13)
    half = torch.where(exp >= 31, sign | F16_INF, packed)
    half = torch.where(exp <= 0, sign, half)
    return _to_signed(half, 16, torch.int16)


def decode_f16(bits: torch.Tensor) -> torch.Tensor:
    """Битовые шаблоны half-float -> float32.

    Учитываются только младшие 16 бит. Нулевое поле экспоненты даёт ноль
    со знаком. Любая ненулевая экспонента, включая 31, только переносится
    в смещение float32, поэтому шаблон насыщения 0x7C00 читается как 65536.0.
    """
    h = _to_unsigned(bits, 16)
    sign = (h & F16_SIGN) << 16
    exp = (h & F16_INF) >> 10
    mant = h & 0x03FF

    exp32 = exp - _F16_BIAS + _F32_BIAS
    word = torch.where(exp == 0, sign, sign | (exp32 << 23) | (mant << 13))
    return _to_signed(word, 32, torch.int32).view(torch.float32)


def f32_to_f16(value: float) -> int:
    """Скалярный вариант `encode_f16`. Возвращает беззнаковое 16-битное число."""
    half = encode_f16(narrow_f32(value))
    return int(half[0]) & 0xFFFF


def f16_to_f32(bits: int) -> float:
    """Скалярный вариант `decode_f16`."""
    word = torch.tensor([int(bits) & 0xFFFF], dtype=torch.int32)
    return float(decode_f16(word)[0])


def narrow_f32(value: float) -> torch.Tensor:
    """Скаляр float64 -> 1-элементный float32 тензор (переполнение даёт inf)."""
    return torch.tensor([value], dtype=torch.float64).to(torch.float32)


def _round(q: torch.Tensor, rounding: str) -> torch.Tensor:
    if rounding == "trunc":
        return torch.trunc(q)
    if rounding == "nearest":
        return torch.round(q)
    raise ValueError(f"unknown rounding mode {rounding!r}, expected one of {ROUNDING_MODES}")


def affine_encode(
    values: torch.Tensor, scale: float, zero_point: int = 0, rounding: str = "trunc"
) -> torch.Tensor:
    """Аффинное квантование: `clamp(round(x / scale) + zero_point)` -> int8.

    Арифметика ведётся в float32. Значения за пределами диапазона
    насыщаются до -128/127, NaN отображается в `zero_point`.
    """
    if values.dtype != torch.float32:
        values = values.to(torch.float32)

    # Деление строго в float32, без умножения на 1/scale.
    q = torch.nan_to_num(values / torch.full_like(values, scale), nan=0.0)
    q = _round(q, rounding) + zero_point
    return q.clamp(INT8_MIN, INT8_MAX).to(torch.int8)


def affine_decode(codes: torch.Tensor, scale: float, zero_point: int = 0) -> torch.Tensor:
    """Обратное отображение: `(code - zero_point) * scale` в float32."""
    return (codes.to(torch.float32) - zero_point) * scale
