"""dyntensor — плоские тензоры float32 / float16 / int8 с единым интерфейсом.

Экспортируются побитовый кодек half-float, аффинные примитивы int8,
класс DynTensor с функциями create/destroy/get/set и симметричный
квантователь quantize.
"""

import logging

from ._core import (  # noqa: F401
    F16_INF,
    F16_SIGN,
    INT8_MAX,
    INT8_MIN,
    ROUNDING_MODES,
    affine_decode,
    affine_encode,
    decode_f16,
    encode_f16,
    f16_to_f32,
    f32_to_f16,
)
from ._storage import Variant  # noqa: F401
from ._tensor import DynTensor, create, destroy  # noqa: F401
from ._quantize import QuantizationReport, dequantize, quantize  # noqa: F401

# Импортируем _access ради побочных эффектов (рег. HANDLED_FUNCTIONS)
from ._access import tensor_get, tensor_set  # noqa: F401

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "F16_INF",
    "F16_SIGN",
    "INT8_MAX",
    "INT8_MIN",
    "ROUNDING_MODES",
    "affine_decode",
    "affine_encode",
    "decode_f16",
    "encode_f16",
    "f16_to_f32",
    "f32_to_f16",
    "Variant",
    "DynTensor",
    "create",
    "destroy",
    "tensor_get",
    "tensor_set",
    "QuantizationReport",
    "quantize",
    "dequantize",
]
