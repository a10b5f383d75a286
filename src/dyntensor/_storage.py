"""dyntensor._storage
=====================
Хранилища для DynTensor: по одному классу на каждое представление.

Каждое хранилище владеет собственным 1-D буфером `torch` фиксированной
длины. Параметры квантования (scale, zero_point) есть только у
`Int8Storage`, поэтому обратиться к ним у float-хранилища невозможно.
"""

from __future__ import annotations

import enum
import math
import operator
from typing import Dict, Type, Union

import numpy as np
import torch

from ._core import INT8_MAX, INT8_MIN, ROUNDING_MODES

__all__ = [
    "Variant",
    "Float32Storage",
    "Float16Storage",
    "Int8Storage",
    "STORAGE_TYPES",
    "allocate",
]


class Variant(enum.Enum):
    """Тег представления тензора."""

    FLOAT32 = "f32"
    FLOAT16 = "f16"
    INT8 = "int8"

    @property
    def torch_dtype(self) -> torch.dtype:
        return _TORCH_DTYPES[self]

    @property
    def element_size(self) -> int:
        """Ширина элемента в байтах."""
        return _ELEMENT_SIZES[self]

    @classmethod
    def parse(cls, value: Union[Variant, str]) -> Variant:
        """Принимает Variant, его имя или распространённый псевдоним ("float16", "i8")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise TypeError(f"variant must be a Variant or str, got {type(value).__name__}")
        key = value.strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        raise ValueError(f"unknown variant {value!r}")


_TORCH_DTYPES = {
    Variant.FLOAT32: torch.float32,
    # half-float хранится как битовые шаблоны, а не как torch.float16
    Variant.FLOAT16: torch.int16,
    Variant.INT8: torch.int8,
}

_ELEMENT_SIZES = {Variant.FLOAT32: 4, Variant.FLOAT16: 2, Variant.INT8: 1}

# int8 арифметика идёт во float32, scale должен быть нормальным float32
_F32 = np.finfo(np.float32)

_ALIASES = {
    "f32": Variant.FLOAT32, "float32": Variant.FLOAT32, "fp32": Variant.FLOAT32,
    "f16": Variant.FLOAT16, "float16": Variant.FLOAT16, "fp16": Variant.FLOAT16, "half": Variant.FLOAT16,
    "int8": Variant.INT8, "i8": Variant.INT8, "q8": Variant.INT8,
}


def _check_length(length) -> int:
    try:
        length = operator.index(length)
    except TypeError:
        raise TypeError(f"length must be an integer, got {type(length).__name__}") from None
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    return length


class _Storage:
    variant: Variant

    def __init__(self, length: int):
        self.buffer = torch.zeros(_check_length(length), dtype=self.variant.torch_dtype)

    def __len__(self) -> int:
        return self.buffer.numel()

    @property
    def nbytes(self) -> int:
        return self.buffer.numel() * self.buffer.element_size()

    def codes(self) -> np.ndarray:
        """Копия сырых хранимых значений."""
        return self.buffer.numpy().copy()


class Float32Storage(_Storage):
    variant = Variant.FLOAT32


class Float16Storage(_Storage):
    variant = Variant.FLOAT16

    def codes(self) -> np.ndarray:
        # int16 -> uint16 без изменения битов
        return self.buffer.numpy().view(np.uint16).copy()


class Int8Storage(_Storage):
    """int8 коды плюс аффинные параметры `(code - zero_point) * scale`."""

    variant = Variant.INT8

    def __init__(self, length: int, scale: float = 1.0, zero_point: int = 0, rounding: str = "trunc"):
        super().__init__(length)
        if rounding not in ROUNDING_MODES:
            raise ValueError(f"unknown rounding mode {rounding!r}, expected one of {ROUNDING_MODES}")
        self.rounding = rounding
        self.calibrate(scale, zero_point)

    def calibrate(self, scale: float, zero_point: int) -> None:
        """Задаёт параметры. scale хранится уже суженным до float32."""
        scale = float(scale)
        if not math.isfinite(scale) or not _F32.tiny <= scale <= _F32.max:
            raise ValueError(f"scale must be a positive finite number representable as a normal float32, got {scale}")
        zero_point = operator.index(zero_point)
        if not INT8_MIN <= zero_point <= INT8_MAX:
            raise ValueError(f"zero_point must lie in [{INT8_MIN}, {INT8_MAX}], got {zero_point}")
        self.scale = float(np.float32(scale))
        self.zero_point = zero_point


STORAGE_TYPES: Dict[Variant, Type[_Storage]] = {
    Variant.FLOAT32: Float32Storage,
    Variant.FLOAT16: Float16Storage,
    Variant.INT8: Int8Storage,
}


def allocate(length: int, variant: Union[Variant, str], **quant_params) -> _Storage:
    """Создаёт заполненное нулями хранилище нужного представления.

    `quant_params` (scale, zero_point, rounding) допустимы только для INT8.
    """
    variant = Variant.parse(variant)
    if quant_params and variant is not Variant.INT8:
        names = ", ".join(sorted(quant_params))
        raise ValueError(f"{names} only apply to INT8 tensors, not {variant.name}")
    return STORAGE_TYPES[variant](length, **quant_params)
