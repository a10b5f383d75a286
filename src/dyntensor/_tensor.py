"""dyntensor._tensor
====================
Класс DynTensor: плоский тензор с одним из трёх представлений
(float32, half-float, int8) за единым числовым интерфейсом get/set.

Сами преобразования значений зарегистрированы в `_access.py`
через декоратор @implements.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import torch

from ._storage import Variant, allocate

# Глобальный диспатчер операций доступа: (операция, Variant) -> функция.
# Заполняется декоратором @implements в _access.py
HANDLED_FUNCTIONS: Dict[Tuple[str, Variant], Callable] = {}

ACCESS_OPS = ("read", "write", "read_all", "write_all")


def implements(op: str, variant: Variant):
    """Декоратор для регистрации реализации операции доступа для представления."""
    if op not in ACCESS_OPS:
        raise ValueError(f"unknown access op {op!r}")

    def decorator(func):
        HANDLED_FUNCTIONS[(op, variant)] = func
        return func
    return decorator


def _dispatch(op: str, variant: Variant) -> Callable:
    try:
        return HANDLED_FUNCTIONS[(op, variant)]
    except KeyError:
        raise NotImplementedError(f"DynTensor: {op} is not implemented for {variant.name}.") from None


class DynTensor:
    """
    Плоский числовой тензор с фиксированными длиной и представлением.

    Тензор единолично владеет хранилищем. Освобождение идемпотентно
    (`release`, `destroy` или выход из блока `with`), любое обращение
    к освобождённому тензору вызывает RuntimeError.
    """

    def __init__(self, storage):
        if not hasattr(storage, "variant") or not hasattr(storage, "buffer"):
            raise TypeError("storage must be one of the dyntensor storage classes")
        self._storage = storage
        self._variant = storage.variant
        self._length = len(storage)

    @classmethod
    def create(cls, length: int, variant: Union[Variant, str], *, scale: Optional[float] = None,
               zero_point: Optional[int] = None, rounding: Optional[str] = None) -> DynTensor:
        """Создаёт тензор длины `length`, заполненный нулями."""
        params = {"scale": scale, "zero_point": zero_point, "rounding": rounding}
        params = {k: v for k, v in params.items() if v is not None}
        return cls(allocate(length, variant, **params))

    @classmethod
    def from_values(cls, values: Union[Iterable[float], torch.Tensor, np.ndarray],
                    variant: Union[Variant, str] = Variant.FLOAT32, **kwargs) -> DynTensor:
        """
        Создаёт тензор из последовательности вещественных чисел.
        Значения проходят через то же преобразование, что и `set`.
        """
        if isinstance(values, torch.Tensor):
            flat = values.detach().to(torch.float32).flatten()
        else:
            if not isinstance(values, np.ndarray):
                values = list(values)
            flat = torch.from_numpy(np.asarray(values, dtype=np.float64)).to(torch.float32).flatten()
        tensor = cls.create(flat.numel(), variant, **kwargs)
        tensor.write_all(flat)
        return tensor

    # --- Свойства ---
    @property
    def variant(self) -> Variant:
        return self._variant

    @property
    def storage(self):
        if self._storage is None:
            raise RuntimeError("DynTensor: tensor has been released")
        return self._storage

    @property
    def released(self) -> bool:
        return self._storage is None

    @property
    def scale(self) -> float:
        """Шаг квантования. Для float-представлений всегда 1.0."""
        return self.storage.scale if self._variant is Variant.INT8 else 1.0

    @property
    def zero_point(self) -> int:
        return self.storage.zero_point if self._variant is Variant.INT8 else 0

    @property
    def rounding(self) -> Optional[str]:
        return self.storage.rounding if self._variant is Variant.INT8 else None

    @property
    def nbytes(self) -> int:
        return self._length * self._variant.element_size

    def __len__(self) -> int:
        return self._length

    # --- Поэлементный доступ ---
    def _in_range(self, idx: int) -> bool:
        return 0 <= idx < self._length

    def get(self, idx: int) -> float:
        """Логическое значение элемента. Вне диапазона возвращает 0.0."""
        idx = operator.index(idx)
        storage = self.storage
        if not self._in_range(idx):
            return 0.0
        return _dispatch("read", self._variant)(storage, idx)

    def set(self, idx: int, value: float) -> None:
        """Записывает значение элемента. Вне диапазона ничего не делает."""
        idx = operator.index(idx)
        storage = self.storage
        if not self._in_range(idx):
            return
        _dispatch("write", self._variant)(storage, idx, float(value))

    def _checked_index(self, idx) -> int:
        idx = operator.index(idx)
        if idx < 0:
            idx += self._length
        if not self._in_range(idx):
            raise IndexError(f"index {idx} is out of range for DynTensor of length {self._length}")
        return idx

    def __getitem__(self, idx) -> float:
        return self.get(self._checked_index(idx))

    def __setitem__(self, idx, value: float) -> None:
        self.set(self._checked_index(idx), value)

    def __iter__(self) -> Iterator[float]:
        return iter(self.tolist())

    # --- Массовый доступ ---
    def read_all(self) -> torch.Tensor:
        """Все логические значения как новый float32 тензор."""
        return _dispatch("read_all", self._variant)(self.storage)

    def write_all(self, values: torch.Tensor) -> None:
        values = torch.as_tensor(values, dtype=torch.float32).flatten()
        if values.numel() != self._length:
            raise ValueError(f"expected {self._length} values, got {values.numel()}")
        _dispatch("write_all", self._variant)(self.storage, values)

    def tolist(self) -> List[float]:
        return self.read_all().tolist()

    def codes(self) -> np.ndarray:
        """
        Копия сырых хранимых значений: float32 для FLOAT32,
        uint16 битовые шаблоны для FLOAT16, int8 коды для INT8.
        """
        return self.storage.codes()

    def to(self, variant: Union[Variant, str], **kwargs) -> DynTensor:
        """
        Возвращает новый тензор в представлении `variant`.
        Переход в INT8 без явного `scale` выполняется через quantize
        (симметричная калибровка) из любого представления: FLOAT16 и INT8
        сначала читаются в промежуточный FLOAT32 тензор. Остальные пары
        копируют логические значения.
        """
        variant = Variant.parse(variant)
        if variant is Variant.INT8 and "scale" not in kwargs:
            from ._quantize import quantize

            source = self if self._variant is Variant.FLOAT32 else DynTensor.from_values(self.read_all())
            result = DynTensor.create(self._length, variant, **kwargs)
            quantize(source, result)
            return result
        return DynTensor.from_values(self.read_all(), variant, **kwargs)

    # --- Освобождение ---
    def release(self) -> None:
        """Освобождает хранилище. Повторный вызов ничего не делает."""
        self._storage = None

    def __enter__(self) -> DynTensor:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        if self.released:
            return f"DynTensor(<released>, variant={self._variant.name})"
        body = f"DynTensor({self.tolist()}, variant={self._variant.name}"
        if self._variant is Variant.INT8:
            body += f", scale={self.scale:.6g}, zero_point={self.zero_point}"
        return body + ")"


def create(length: int, variant: Union[Variant, str], **kwargs) -> DynTensor:
    """Функциональная форма `DynTensor.create`."""
    return DynTensor.create(length, variant, **kwargs)


def destroy(tensor: DynTensor) -> None:
    """Функциональная форма `DynTensor.release`; безопасна при повторном вызове."""
    tensor.release()
