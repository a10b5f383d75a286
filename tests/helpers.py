import math
from typing import List, Sequence

import numpy as np
from mpmath import mp

from dyntensor import DynTensor, Variant

mp.dps = 50


def make(values: Sequence[float], variant=Variant.FLOAT32, **kwargs) -> DynTensor:
    """Вспомогательная функция для создания DynTensor из списка."""
    return DynTensor.from_values(values, variant, **kwargs)


def truncate_to_half(x: np.ndarray) -> np.ndarray:
    """
    Эталон для нормального диапазона half-float: float32 с обнулёнными
    13 младшими битами мантиссы (усечение до 10 бит).
    """
    bits = np.asarray(x, dtype=np.float32).view(np.uint32) & np.uint32(0xFFFFE000)
    return bits.view(np.float32)


def half_ulp_mp(x: float) -> mp.mpf:
    """Расстояние между соседними half-float числами в окрестности x (точно)."""
    _, e = math.frexp(x)
    return mp.ldexp(mp.mpf(1), e - 11)


def numpy_half_bits(values: Sequence[float]) -> List[int]:
    """Битовые шаблоны numpy float16 (round-to-nearest) для сравнения."""
    return [int(b) for b in np.asarray(values, dtype=np.float16).view(np.uint16)]


def int8_reference(values: Sequence[float], scale: float) -> np.ndarray:
    """trunc(x / scale) с насыщением, целиком в float32."""
    x = np.asarray(values, dtype=np.float32)
    q = np.trunc(x / np.float32(scale))
    return np.clip(q, -128, 127).astype(np.int8)
