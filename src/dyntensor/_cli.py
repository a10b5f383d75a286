"""dyntensor._cli
=================
Демонстрация: читает длину и значения, заполняет FLOAT32 и FLOAT16
тензоры, квантует в INT8 и печатает результат.

Запуск: `python -m dyntensor` или `dyntensor-demo`.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from ._quantize import quantize
from ._storage import Variant
from ._tensor import DynTensor

__all__ = ["parse_real", "read_real", "read_length", "run", "main"]

# Длина задаётся 16-битным беззнаковым числом.
MAX_LENGTH = 0xFFFF

_NUMBER = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]


def parse_real(text: str) -> float:
    """Ровно одно вещественное число, пробелы вокруг допускаются."""
    stripped = text.strip()
    match = _NUMBER.match(stripped)
    if match is None:
        raise ValueError("enter a number")
    if match.end() != len(stripped):
        raise ValueError("enter only a number")
    return float(match.group())


def _parse_length(text: str) -> int:
    stripped = text.strip()
    if not stripped.isdigit():
        raise ValueError("enter a non-negative integer")
    length = int(stripped)
    if length > MAX_LENGTH:
        raise ValueError(f"length must not exceed {MAX_LENGTH}")
    return length


def _read(parse, prompt: str, input_fn: InputFn, output_fn: OutputFn):
    # Повторяем запрос до корректного ввода; EOFError уходит вызывающему.
    while True:
        text = input_fn(prompt)
        try:
            return parse(text)
        except ValueError as e:
            output_fn(f"Error: {e}!")


def read_real(prompt: str, input_fn: InputFn = input, output_fn: OutputFn = print) -> float:
    return _read(parse_real, prompt, input_fn, output_fn)


def read_length(prompt: str, input_fn: InputFn = input, output_fn: OutputFn = print) -> int:
    return _read(_parse_length, prompt, input_fn, output_fn)


def run(input_fn: InputFn = input, output_fn: OutputFn = print) -> int:
    n = read_length("Tensor length: ", input_fn, output_fn)

    with DynTensor.create(n, Variant.FLOAT32) as f32, \
            DynTensor.create(n, Variant.FLOAT16) as f16, \
            DynTensor.create(n, Variant.INT8) as i8:
        output_fn("Enter F32 values:")
        for i in range(n):
            value = read_real(f"[{i}]: ", input_fn, output_fn)
            f32.set(i, value)
            f16.set(i, value)

        report = quantize(f32, i8)
        output_fn(f"\n{report}")

        output_fn("\nF16 tensor:")
        output_fn(" ".join(f"{v:.3f}" for v in f16.tolist()))
        output_fn("INT8 tensor:")
        output_fn(" ".join(str(int(c)) for c in i8.codes()))
    return 0


def main() -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        return run(input, print)
    except (EOFError, KeyboardInterrupt):
        print()
        return 1
