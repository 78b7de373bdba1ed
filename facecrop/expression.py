"""
expression.py – Build the per-frame crop offset as an ffmpeg expression.

The crop filter evaluates its ``x`` expression once per output frame with the
frame index bound to ``n``. The timeline is turned into a small expression
tree first; rendering to ffmpeg syntax and evaluating for a given ``n`` are
separate operations on that tree, so the logic can be checked without
parsing text.

Program shape (one clause per segment, in sample order)::

    if(<guard>,st(0,<value>));
    ...
    ld(0)

Guards are disjoint and the last one is unbounded, so exactly one store fires
for every frame index.
"""

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction

from facecrop.timeline import EmptyTimeline, Timeline

log = logging.getLogger(__name__)

CROP_SLOT = 0

# Binding strength for parenthesisation when rendering
_ATOM = 3
_MUL = 2
_ADD = 1


class Expr:
    precedence = _ATOM

    def render(self) -> str:
        raise NotImplementedError

    def evaluate(self, n: int, slots: dict) -> Fraction:
        raise NotImplementedError

    def _wrap(self, child: "Expr", strict: bool = False) -> str:
        text = child.render()
        if child.precedence < self.precedence or (strict and child.precedence == self.precedence):
            return f"({text})"
        return text


@dataclass(frozen=True)
class Const(Expr):
    value: int

    def render(self) -> str:
        return str(self.value)

    def evaluate(self, n, slots):
        return Fraction(self.value)


@dataclass(frozen=True)
class FrameIndex(Expr):
    def render(self) -> str:
        return "n"

    def evaluate(self, n, slots):
        return Fraction(n)


@dataclass(frozen=True)
class Add(Expr):
    left: Expr
    right: Expr
    precedence = _ADD

    def render(self) -> str:
        return f"{self._wrap(self.left)}+{self._wrap(self.right)}"

    def evaluate(self, n, slots):
        return self.left.evaluate(n, slots) + self.right.evaluate(n, slots)


@dataclass(frozen=True)
class Sub(Expr):
    left: Expr
    right: Expr
    precedence = _ADD

    def render(self) -> str:
        return f"{self._wrap(self.left)}-{self._wrap(self.right, strict=True)}"

    def evaluate(self, n, slots):
        return self.left.evaluate(n, slots) - self.right.evaluate(n, slots)


@dataclass(frozen=True)
class Div(Expr):
    left: Expr
    right: Expr
    precedence = _MUL

    def render(self) -> str:
        return f"{self._wrap(self.left)}/{self._wrap(self.right, strict=True)}"

    def evaluate(self, n, slots):
        return self.left.evaluate(n, slots) / self.right.evaluate(n, slots)


@dataclass(frozen=True)
class Mod(Expr):
    """ffmpeg ``mod``: result takes the sign of the divisor."""
    left: Expr
    right: Expr

    def render(self) -> str:
        return f"mod({self.left.render()},{self.right.render()})"

    def evaluate(self, n, slots):
        a = self.left.evaluate(n, slots)
        b = self.right.evaluate(n, slots)
        return a - b * math.floor(a / b)


@dataclass(frozen=True)
class Lerp(Expr):
    start: Expr
    end: Expr
    fraction: Expr

    def render(self) -> str:
        return f"lerp({self.start.render()},{self.end.render()},{self.fraction.render()})"

    def evaluate(self, n, slots):
        a = self.start.evaluate(n, slots)
        b = self.end.evaluate(n, slots)
        return a + (b - a) * self.fraction.evaluate(n, slots)


@dataclass(frozen=True)
class Eq(Expr):
    left: Expr
    right: Expr

    def render(self) -> str:
        return f"eq({self.left.render()},{self.right.render()})"

    def evaluate(self, n, slots):
        return Fraction(int(self.left.evaluate(n, slots) == self.right.evaluate(n, slots)))


@dataclass(frozen=True)
class Between(Expr):
    """Inclusive on both ends."""
    value: Expr
    low: Expr
    high: Expr

    def render(self) -> str:
        return f"between({self.value.render()},{self.low.render()},{self.high.render()})"

    def evaluate(self, n, slots):
        v = self.value.evaluate(n, slots)
        return Fraction(int(self.low.evaluate(n, slots) <= v <= self.high.evaluate(n, slots)))


@dataclass(frozen=True)
class Gte(Expr):
    left: Expr
    right: Expr

    def render(self) -> str:
        return f"gte({self.left.render()},{self.right.render()})"

    def evaluate(self, n, slots):
        return Fraction(int(self.left.evaluate(n, slots) >= self.right.evaluate(n, slots)))


@dataclass(frozen=True)
class Store(Expr):
    slot: int
    value: Expr

    def render(self) -> str:
        return f"st({self.slot},{self.value.render()})"

    def evaluate(self, n, slots):
        result = self.value.evaluate(n, slots)
        slots[self.slot] = result
        return result


@dataclass(frozen=True)
class Load(Expr):
    slot: int

    def render(self) -> str:
        return f"ld({self.slot})"

    def evaluate(self, n, slots):
        # ffmpeg variables start at zero
        return slots.get(self.slot, Fraction(0))


@dataclass(frozen=True)
class If(Expr):
    """``if(cond,then)``: evaluates ``then`` only when ``cond`` is non-zero, else 0."""
    cond: Expr
    then: Expr

    def render(self) -> str:
        return f"if({self.cond.render()},{self.then.render()})"

    def evaluate(self, n, slots):
        if self.cond.evaluate(n, slots) != 0:
            return self.then.evaluate(n, slots)
        return Fraction(0)


@dataclass(frozen=True)
class Program(Expr):
    """Guarded clauses run in order, then the trailing load is the result."""
    clauses: tuple[Expr, ...]
    result: Expr = field(default_factory=lambda: Load(CROP_SLOT))

    def render(self) -> str:
        lines = [f"{clause.render()};" for clause in self.clauses]
        lines.append(self.result.render())
        return "\n".join(lines)

    def evaluate(self, n, slots=None):
        slots = {} if slots is None else slots
        for clause in self.clauses:
            clause.evaluate(n, slots)
        return self.result.evaluate(n, slots)


def render(node: Expr) -> str:
    """Render an expression tree in ffmpeg expression syntax."""
    return node.render()


def evaluate(node: Expr, n: int) -> Fraction:
    """Evaluate an expression tree for frame index ``n`` with exact arithmetic."""
    return node.evaluate(n, {})


N = FrameIndex()


def _assign(guard: Expr, value: Expr, slot: int = CROP_SLOT) -> If:
    return If(guard, Store(slot, value))


def _sweep_fraction(interval: int) -> Expr:
    """``(mod(n-1,F)+1)/F``: runs from 1/F up to 1 across one interval."""
    return Div(Add(Mod(Sub(N, Const(1)), Const(interval)), Const(1)), Const(interval))


def _piecewise_clauses(xs: list[int], interval: int) -> list[If]:
    clauses = []
    last = len(xs) - 1
    for i, x in enumerate(xs):
        f = i * interval
        if i == last:
            guard = Gte(N, Const(f))
        else:
            guard = Between(N, Const(f), Const(f + interval - 1))
        clauses.append(_assign(guard, Const(x)))
    return clauses


def _lerp_clauses(xs: list[int], interval: int, hold_last: bool) -> list[If]:
    clauses = [_assign(Eq(N, Const(0)), Const(xs[0]))]
    fraction = _sweep_fraction(interval)
    last = len(xs) - 1
    for i in range(1, len(xs)):
        f = (i - 1) * interval
        if i == last and not hold_last:
            guard = Gte(N, Const(f + 1))
        else:
            guard = Between(N, Const(f + 1), Const(f + interval))
        clauses.append(_assign(guard, Lerp(Const(xs[i - 1]), Const(xs[i]), fraction)))
    if hold_last:
        clauses.append(_assign(Gte(N, Const(last * interval + 1)), Const(xs[last])))
    return clauses


def synthesize(
    timeline: Timeline,
    interval: int,
    interpolate: bool = True,
    hold_last: bool = True,
) -> Program:
    """
    Build the crop-x program for a completed timeline.

    Args:
        timeline: Samples taken every ``interval`` source frames. Sealed here.
        interval: Sampling interval ``F`` in source frames.
        interpolate: Sweep linearly between samples instead of stepping.
        hold_last: With interpolation, stay on the last sample's x after its
            frame. When False the last sweep's guard is left open-ended, so
            later frames keep re-running that sweep.

    Raises:
        EmptyTimeline: If the timeline has no samples.
        ValueError: If ``interval`` is not positive.
    """
    if interval < 1:
        raise ValueError(f"interval must be a positive integer, got {interval}")

    timeline.seal()
    xs = timeline.xs
    if not xs:
        raise EmptyTimeline("cannot synthesize a crop expression from zero samples")

    if len(xs) == 1:
        clauses = [_assign(Gte(N, Const(0)), Const(xs[0]))]
    elif interpolate:
        clauses = _lerp_clauses(xs, interval, hold_last)
    else:
        clauses = _piecewise_clauses(xs, interval)

    log.debug("Synthesized %d clauses from %d samples (interval=%d, lerp=%s)",
              len(clauses), len(xs), interval, interpolate)
    return Program(tuple(clauses))


def crop_filter(program: Program, width: int, height: int) -> str:
    """Wrap a program into an ffmpeg ``crop`` filter with a fixed y of 0."""
    return f"crop={width}:{height}:'\n{program.render()}\n':0"
