"""Operand generation and answer computation for the memory drill.

A round is a short sequence of operands shown one at a time; the player
has to keep a running total in their head. The answer is a left fold of
the operands under a single operation. Division rounds every intermediate
quotient to two decimal places before continuing, so long division chains
compound their rounding. Game answers depend on that, so it is kept.

Nothing here touches time or I/O. Randomness comes from a seedable
``random.Random`` owned by :class:`ProblemGenerator`.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from enum import Enum


class InvalidInput(ValueError):
    """Raised when an answer is requested for an empty operand sequence."""


class Operation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_SYMBOLS = {
    Operation.ADD: "+",
    Operation.SUBTRACT: "-",
    Operation.MULTIPLY: "×",
    Operation.DIVIDE: "÷",
}

_LABELS = {
    Operation.ADD: "Addition",
    Operation.SUBTRACT: "Subtraction",
    Operation.MULTIPLY: "Multiplication",
    Operation.DIVIDE: "Division",
}

# Inclusive operand bounds per operation.
OPERAND_RANGES: dict[Operation, tuple[int, int]] = {
    Operation.ADD: (1, 20),
    Operation.SUBTRACT: (1, 20),
    Operation.MULTIPLY: (1, 12),
    Operation.DIVIDE: (1, 10),
}


@dataclass(frozen=True, slots=True)
class Round:
    operation: Operation
    operands: tuple[int, ...]
    correct_answer: float


class ProblemGenerator:
    """Generates operand sequences for a chosen operation.

    The same seed yields the same stream of rounds.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def generate_operands(self, operation: Operation, count: int) -> tuple[int, ...]:
        lo, hi = OPERAND_RANGES[Operation(operation)]
        n = max(1, int(count))
        return tuple(self._rng.randint(lo, hi) for _ in range(n))

    def next_round(self, operation: Operation, count: int) -> Round:
        op = Operation(operation)
        operands = self.generate_operands(op, count)
        return Round(operation=op, operands=operands, correct_answer=compute_answer(operands, op))


def compute_answer(operands: tuple[int, ...] | list[int], operation: Operation) -> float:
    """Fold ``operands`` left to right under ``operation``.

    Each intermediate quotient is rounded to 2 decimals; the final result
    is rounded to 2 decimals for every operation. A zero divisor does not
    raise: the running value becomes ``inf`` (or ``nan`` for 0/0) and
    propagates.
    """

    if not operands:
        raise InvalidInput("operands must not be empty")

    op = Operation(operation)
    result = float(operands[0])
    for value in operands[1:]:
        if op is Operation.ADD:
            result += value
        elif op is Operation.SUBTRACT:
            result -= value
        elif op is Operation.MULTIPLY:
            result *= value
        else:
            result = round2(_divide(result, float(value)))
    return round2(result)


def round2(x: float) -> float:
    """Round to 2 decimal places, halves towards +infinity."""

    if not math.isfinite(x):
        return x
    return math.floor(x * 100.0 + 0.5) / 100.0


def format_answer(value: float) -> str:
    if not math.isfinite(value):
        return str(value)
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _divide(a: float, b: float) -> float:
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a)
