"""dyntensor._quantize
======================
Симметричное квантование float32 -> int8 и обратное преобразование.

* quantize — калибрует scale по максимуму модуля источника
  (zero_point = 0) и записывает коды прямо в буфер назначения
* dequantize — новый float32 тензор из int8 тензора
* QuantizationReport — размеры буферов до и после
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import NamedTuple

import numpy as np
import torch

from ._core import INT8_MAX, affine_encode
from ._storage import Variant
from ._tensor import DynTensor

__all__ = [
    "QuantizationReport",
    "quantize",
    "dequantize",
]

logger = logging.getLogger(__name__)


class QuantizationReport(NamedTuple):
    """Размер хранилища до и после квантования, в байтах."""

    bytes_before: int
    bytes_after: int

    @property
    def ratio(self) -> float:
        """Во сколько раз уменьшился размер (1.0 для пустых тензоров)."""
        if self.bytes_after == 0:
            return 1.0
        return self.bytes_before / self.bytes_after

    def __str__(self) -> str:
        return f"[Quantization] {self.bytes_before} byte -> {self.bytes_after} byte"


def _require(tensor: DynTensor, variant: Variant, name: str) -> None:
    if not isinstance(tensor, DynTensor):
        raise TypeError(f"{name} must be a DynTensor, got {type(tensor).__name__}")
    if tensor.variant is not variant:
        raise TypeError(f"{name} must be a {variant.name} tensor, got {tensor.variant.name}")
    if tensor.released:
        raise RuntimeError(f"{name} has been released")


def _symmetric_scale(values: torch.Tensor) -> float:
    """max|x| / 127 в float32.

    Ноль, если источник пуст, состоит из нулей или scale вышел бы
    денормализованным (такие значения всё равно кодируются нулём).
    """
    if values.numel() == 0:
        return 0.0
    max_abs = np.float32(values.abs().max().item())
    scale = max_abs / np.float32(INT8_MAX)
    if scale < np.finfo(np.float32).tiny:
        return 0.0
    return float(scale)


def quantize(source: DynTensor, destination: DynTensor) -> QuantizationReport:
    """
    Квантует FLOAT32 тензор `source` в INT8 тензор `destination`.

    `destination.scale` становится `max|source| / 127`, `zero_point` — 0.
    Коды получаются как `trunc(x / scale)` (или округлением, если
    у назначения rounding="nearest") с насыщением до [-128, 127].
    Для пустого или нулевого источника scale полагается равным 1.0.

    Returns:
        QuantizationReport с размерами источника и назначения в байтах.
    """
    _require(source, Variant.FLOAT32, "source")
    _require(destination, Variant.INT8, "destination")
    if len(source) != len(destination):
        raise ValueError(
            f"source and destination lengths differ: {len(source)} != {len(destination)}"
        )

    values = source.storage.buffer
    scale = _symmetric_scale(values)
    if not math.isfinite(scale):
        raise ValueError("source contains non-finite values, cannot derive a scale")
    if scale == 0.0:
        if len(source):
            warnings.warn(
                "dyntensor: source tensor has zero range, using scale=1.0 instead of 0.0",
                RuntimeWarning,
                stacklevel=2,
            )
        scale = 1.0

    storage = destination.storage
    storage.calibrate(scale, 0)
    storage.buffer.copy_(affine_encode(values, scale, 0, storage.rounding))

    report = QuantizationReport(source.nbytes, destination.nbytes)
    logger.info("%s (scale=%.6g)", report, scale)
    return report


def dequantize(source: DynTensor) -> DynTensor:
    """Возвращает новый FLOAT32 тензор с логическими значениями INT8 тензора."""
    _require(source, Variant.INT8, "source")
    return DynTensor.from_values(source.read_all(), Variant.FLOAT32)
