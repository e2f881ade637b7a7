"""Static analysis of parsed lines.

Finds which lines read document aggregates (=sum, =avg, =prev, ...) or
=subtotal, and propagates that taint through assignments until a fixed
point is reached:

    b = =total      # reads an aggregate, so "b" is tainted
    c = b + 5       # references "b", so "c" is tainted too
    c * 2           # references "c", deferred as well
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from . import ast


@dataclass(frozen=True)
class StatementInfo:
    """What a single statement reads and writes."""

    assigns: str | None
    references: frozenset[str]
    uses_aggregate: bool
    uses_subtotal: bool
    uses_prev: bool


@dataclass(frozen=True)
class DependencyAnalysis:
    infos: tuple[StatementInfo | None, ...]
    depends_on_aggregate: frozenset[int]
    depends_on_subtotal: frozenset[int]

    def is_deferred(self, index: int) -> bool:
        """True if the line cannot be evaluated in the first pass."""
        info = self.infos[index]
        if info is None:
            return False
        return (
            info.uses_aggregate
            or info.uses_subtotal
            or index in self.depends_on_aggregate
        )

    def needs_subtotal(self, index: int) -> bool:
        """True if the line must wait for the subtotal pass."""
        info = self.infos[index]
        if info is None:
            return False
        return info.uses_subtotal or index in self.depends_on_subtotal


def walk(expr: ast.Expr) -> Iterator[ast.Expr]:
    """Yield `expr` and every expression nested inside it."""
    yield expr
    match expr:
        case ast.Number() | ast.CurrencyNumber() | ast.Variable():
            pass
        case ast.Aggregate() | ast.Subtotal():
            pass
        case ast.BinaryOp(left=left, right=right):
            yield from walk(left)
            yield from walk(right)
        case ast.Negate(operand=operand) | ast.Percent(operand=operand):
            yield from walk(operand)
        case ast.Paren(inner=inner):
            yield from walk(inner)
        case ast.PercentOf(percent=percent, base=base) | ast.PercentAdjust(
            percent=percent, base=base
        ):
            yield from walk(percent)
            yield from walk(base)
        case _:
            raise TypeError(f"unknown expr type: {type(expr)}")


def analyze_statement(stmt: ast.ExpressionStmt | ast.Assignment) -> StatementInfo:
    match stmt:
        case ast.Assignment(name=name, value=expr):
            assigns = name
        case ast.ExpressionStmt(expr=expr):
            assigns = None
        case _:
            raise TypeError(f"unknown statement type: {type(stmt)}")

    references: set[str] = set()
    uses_aggregate = uses_subtotal = uses_prev = False
    for node in walk(expr):
        match node:
            case ast.Variable(name=ref):
                references.add(ref)
            case ast.Aggregate(kind=kind):
                uses_aggregate = True
                if kind == ast.AggregateKind.PREV:
                    uses_prev = True
            case ast.Subtotal():
                uses_subtotal = True

    return StatementInfo(
        assigns=assigns,
        references=frozenset(references),
        uses_aggregate=uses_aggregate,
        uses_subtotal=uses_subtotal,
        uses_prev=uses_prev,
    )


def propagate(infos: Sequence[StatementInfo | None], seeds: Sequence[int]) -> frozenset[int]:
    """Flag every line that reads a variable tainted by the seed lines.

    The names assigned by seed lines are tainted. A line referencing a
    tainted name is flagged, and if it is itself an assignment its name
    becomes tainted. Sweeps repeat until one flags nothing new; each sweep
    flags at least one line, so there are at most len(infos) + 1 sweeps.
    """
    seed_set = set(seeds)
    tainted = {infos[i].assigns for i in seed_set if infos[i].assigns is not None}
    flagged: set[int] = set()

    changed = True
    while changed:
        changed = False
        for i, info in enumerate(infos):
            if info is None or i in flagged or i in seed_set:
                continue
            if info.references & tainted:
                flagged.add(i)
                if info.assigns is not None:
                    tainted.add(info.assigns)
                changed = True

    return frozenset(flagged)


def analyze(statements: Sequence[ast.ExpressionStmt | ast.Assignment | None]) -> DependencyAnalysis:
    """Analyze the statements of a document (None for empty/failed lines)."""
    infos = tuple(analyze_statement(s) if s is not None else None for s in statements)

    aggregate_seeds = [
        i for i, info in enumerate(infos) if info and (info.uses_aggregate or info.uses_subtotal)
    ]
    subtotal_seeds = [i for i, info in enumerate(infos) if info and info.uses_subtotal]

    return DependencyAnalysis(
        infos=infos,
        depends_on_aggregate=propagate(infos, aggregate_seeds),
        depends_on_subtotal=propagate(infos, subtotal_seeds),
    )
