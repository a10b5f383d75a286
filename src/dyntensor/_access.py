"""dyntensor._access
====================
Реализации операций доступа для каждого представления, регистрируемые
в HANDLED_FUNCTIONS через @implements.

* read / write — один элемент, логическое значение <-> хранимый код
* read_all / write_all — весь буфер целиком (float32 тензор)

Проверка границ выполняется в DynTensor, сюда приходят только
корректные индексы.
"""

from __future__ import annotations

import torch

from ._core import affine_decode, affine_encode, decode_f16, encode_f16, narrow_f32
from ._storage import Float16Storage, Float32Storage, Int8Storage, Variant
from ._tensor import DynTensor, implements

__all__ = [
    "tensor_get",
    "tensor_set",
]


# -----------------------------------------------------------------------------
# FLOAT32: тождественное преобразование (с сужением до 32 бит)
# -----------------------------------------------------------------------------

@implements("read", Variant.FLOAT32)
def _f32_read(storage: Float32Storage, idx: int) -> float:
    return float(storage.buffer[idx])


@implements("write", Variant.FLOAT32)
def _f32_write(storage: Float32Storage, idx: int, value: float) -> None:
    storage.buffer[idx:idx + 1] = narrow_f32(value)


@implements("read_all", Variant.FLOAT32)
def _f32_read_all(storage: Float32Storage) -> torch.Tensor:
    return storage.buffer.clone()


@implements("write_all", Variant.FLOAT32)
def _f32_write_all(storage: Float32Storage, values: torch.Tensor) -> None:
    storage.buffer.copy_(values)


# -----------------------------------------------------------------------------
# FLOAT16: кодек half-float
# -----------------------------------------------------------------------------

@implements("read", Variant.FLOAT16)
def _f16_read(storage: Float16Storage, idx: int) -> float:
    return float(decode_f16(storage.buffer[idx:idx + 1])[0])


@implements("write", Variant.FLOAT16)
def _f16_write(storage: Float16Storage, idx: int, value: float) -> None:
    storage.buffer[idx:idx + 1] = encode_f16(narrow_f32(value))


@implements("read_all", Variant.FLOAT16)
def _f16_read_all(storage: Float16Storage) -> torch.Tensor:
    return decode_f16(storage.buffer)


@implements("write_all", Variant.FLOAT16)
def _f16_write_all(storage: Float16Storage, values: torch.Tensor) -> None:
    storage.buffer.copy_(encode_f16(values))


# -----------------------------------------------------------------------------
# INT8: аффинное квантование с параметрами хранилища
# -----------------------------------------------------------------------------

@implements("read", Variant.INT8)
def _int8_read(storage: Int8Storage, idx: int) -> float:
    return float(affine_decode(storage.buffer[idx:idx + 1], storage.scale, storage.zero_point)[0])


@implements("write", Variant.INT8)
def _int8_write(storage: Int8Storage, idx: int, value: float) -> None:
    q = affine_encode(narrow_f32(value),
                      storage.scale, storage.zero_point, storage.rounding)
    storage.buffer[idx:idx + 1] = q


@implements("read_all", Variant.INT8)
def _int8_read_all(storage: Int8Storage) -> torch.Tensor:
    return affine_decode(storage.buffer, storage.scale, storage.zero_point)


@implements("write_all", Variant.INT8)
def _int8_write_all(storage: Int8Storage, values: torch.Tensor) -> None:
    storage.buffer.copy_(affine_encode(values, storage.scale, storage.zero_point, storage.rounding))


# -----------------------------------------------------------------------------
# Функциональный интерфейс
# -----------------------------------------------------------------------------

def tensor_get(tensor: DynTensor, idx: int) -> float:
    """Значение элемента `idx`; 0.0 для индекса вне `[0, len(tensor))`."""
    return tensor.get(idx)


def tensor_set(tensor: DynTensor, idx: int, value: float) -> None:
    """Записывает `value` в элемент `idx`; индекс вне диапазона игнорируется."""
    tensor.set(idx, value)
