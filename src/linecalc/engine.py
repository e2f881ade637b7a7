"""Document engine: evaluates every line of a calculator document.

Pipeline: split lines -> parse each line -> dependency analysis ->
pass 1 (independent lines) -> document aggregates -> pass 2 (lines that
read =sum/=avg/=prev) -> pass 3 (running subtotals).

Each pass takes the previous tuple of LineResults and returns a new one.
Errors never escape a line: they are recorded on its LineResult.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, Overflow

from pydantic import BaseModel, ConfigDict, Field

from . import ast
from .dependencies import DependencyAnalysis, analyze
from .environment import AggregateSlot, Environment
from .evaluator import EvaluationError, Evaluator, UndefinedVariableError
from .lexer import tokenize
from .parser import ParseError, Parser
from .settings import DEFAULT_SETTINGS, EngineSettings
from .tokens import SourceRange, utf16_len
from .units import Unit, Value, format_decimal, is_currency

logger = logging.getLogger(__name__)

# "\r\n" is a single separator; the rest are the usual line boundaries.
LINE_SEPARATOR = re.compile("(\r\n|[\n\r\v\f\x1c\x1d\x1e\x85\u2028\u2029])")


class LineResult(BaseModel):
    """Outcome of one line: a value, an error, or neither."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    line_index: int
    source_range: SourceRange
    value: Value | None = None
    error: Exception | None = None
    settings: EngineSettings = Field(default=DEFAULT_SETTINGS, exclude=True, repr=False)

    @property
    def display(self) -> str | None:
        if self.value is None:
            return None
        return self.value.display(self.settings)

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", str(self.error))


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    line_results: list[LineResult]
    sum: Decimal | None  # None when the total overflowed
    settings: EngineSettings = Field(default=DEFAULT_SETTINGS, exclude=True, repr=False)

    @property
    def sum_display(self) -> str | None:
        if self.sum is None:
            return None
        return format_decimal(self.sum, self.settings)


@dataclass(frozen=True)
class ParsedLine:
    index: int
    source_range: SourceRange  # absolute, in the whole document
    text: str
    statement: ast.ExpressionStmt | ast.Assignment | None = None
    parse_error: ParseError | None = None


@dataclass
class RunningTotal:
    """Sum of line values that keeps a currency only while it is unambiguous.

    Once the sum overflows, `value` and `average` are None until `reset`.
    """

    total: Decimal = Decimal(0)
    count: int = 0
    currency: Unit | None = None
    conflict: bool = False
    overflow: bool = False

    def add(self, value: Value) -> None:
        self.count += 1
        try:
            self.total += value.as_decimal
        except Overflow:
            self.overflow = True
        unit = value.unit
        if not is_currency(unit) or self.conflict:
            return
        if self.currency is None:
            self.currency = unit
        elif self.currency != unit:
            self.currency = None
            self.conflict = True

    def reset(self) -> None:
        self.total = Decimal(0)
        self.count = 0
        self.currency = None
        self.conflict = False
        self.overflow = False

    @property
    def value(self) -> Value | None:
        if self.overflow:
            return None
        return Value.of(self.total, self.currency)

    @property
    def average(self) -> Value | None:
        if self.overflow:
            return None
        if self.count == 0:
            return Value.of(0)
        return Value.of(self.total / self.count, self.currency)


@dataclass(frozen=True)
class Aggregates:
    sum: Value | None  # None on overflow
    avg: Value | None
    total: Decimal | None  # unit-stripped sum for status displays


def split_lines(source: str) -> list[tuple[str, SourceRange]]:
    """Split text into lines with absolute UTF-16 ranges.

    An empty document (or a trailing newline) still yields a final empty line.
    """
    parts = LINE_SEPARATOR.split(source)
    lines = []
    location = 0
    for i in range(0, len(parts), 2):
        text = parts[i]
        length = utf16_len(text)
        lines.append((text, SourceRange(location=location, length=length)))
        if i + 1 < len(parts):
            location += length + utf16_len(parts[i + 1])
    return lines


def _absolute(error: ParseError | EvaluationError, line_range: SourceRange):
    if error.range is not None:
        error.range = error.range.offset(line_range.location)
    return error


def parse_lines(source: str) -> tuple[ParsedLine, ...]:
    parsed = []
    for index, (text, rng) in enumerate(split_lines(source)):
        if not text.strip():
            parsed.append(ParsedLine(index=index, source_range=rng, text=text))
            continue
        try:
            statement = Parser(tokenize(text)).parse_line()
        except ParseError as e:
            logger.debug("Line %d failed to parse: %s", index, e.message)
            parsed.append(
                ParsedLine(index=index, source_range=rng, text=text, parse_error=_absolute(e, rng))
            )
            continue
        parsed.append(ParsedLine(index=index, source_range=rng, text=text, statement=statement))
    return tuple(parsed)


def _run(line: ParsedLine, env: Environment) -> LineResult:
    try:
        value = Evaluator(env).evaluate(line.statement)
    except EvaluationError as e:
        logger.debug("Line %d failed to evaluate: %s", line.index, e.message)
        return LineResult(
            line_index=line.index, source_range=line.source_range, error=_absolute(e, line.source_range)
        )
    return LineResult(line_index=line.index, source_range=line.source_range, value=value)


def _empty(line: ParsedLine) -> LineResult:
    return LineResult(line_index=line.index, source_range=line.source_range)


def _previous_value(results: Sequence[LineResult], index: int) -> Value | None:
    for result in reversed(results[:index]):
        if result.value is not None:
            return result.value
    return None


def _run_deferred(
    line: ParsedLine,
    analysis: DependencyAnalysis,
    results: Sequence[LineResult],
    env: Environment,
) -> LineResult:
    """Evaluate a line that reads aggregates, with =prev bound for it."""
    if analysis.infos[line.index].uses_prev:
        env.set_aggregate(AggregateSlot.PREV, _previous_value(results, line.index))

    result = _run(line, env)
    # Nothing above to refer to is not an error.
    if isinstance(result.error, UndefinedVariableError) and result.error.name == "=prev":
        return _empty(line)
    return result


def evaluate_independent(
    lines: Sequence[ParsedLine], analysis: DependencyAnalysis, env: Environment
) -> tuple[LineResult, ...]:
    """Pass 1: evaluate every line that does not depend on aggregates."""
    results = []
    for line in lines:
        if line.parse_error is not None:
            results.append(
                LineResult(line_index=line.index, source_range=line.source_range, error=line.parse_error)
            )
        elif line.statement is None or analysis.is_deferred(line.index):
            results.append(_empty(line))
        else:
            results.append(_run(line, env))
    return tuple(results)


def compute_aggregates(results: Sequence[LineResult], analysis: DependencyAnalysis) -> Aggregates:
    """Sum and average of the first pass's values."""
    running = RunningTotal()
    for result in results:
        if result.value is None or analysis.is_deferred(result.line_index):
            continue
        running.add(result.value)
    return Aggregates(
        sum=running.value,
        avg=running.average,
        total=None if running.overflow else running.total,
    )


def _store_aggregate(env: Environment, slot: AggregateSlot, value: Value | None) -> None:
    if value is None:
        logger.debug("Aggregate %s overflowed", slot.value)
        env.invalidate_aggregate(slot)
    else:
        env.set_aggregate(slot, value)


def evaluate_deferred(
    lines: Sequence[ParsedLine],
    analysis: DependencyAnalysis,
    results: Sequence[LineResult],
    env: Environment,
) -> tuple[LineResult, ...]:
    """Pass 2: evaluate aggregate-dependent lines in document order."""
    updated = list(results)
    for line in lines:
        if not analysis.is_deferred(line.index) or analysis.needs_subtotal(line.index):
            continue
        updated[line.index] = _run_deferred(line, analysis, updated, env)
    return tuple(updated)


def evaluate_subtotals(
    lines: Sequence[ParsedLine],
    analysis: DependencyAnalysis,
    results: Sequence[LineResult],
    env: Environment,
) -> tuple[LineResult, ...]:
    """Pass 3: running subtotals, reset after every =subtotal line."""
    updated = list(results)
    segment = RunningTotal()
    for line in lines:
        info = analysis.infos[line.index]
        if info is None:
            continue

        if info.uses_subtotal:
            _store_aggregate(env, AggregateSlot.SUBTOTAL, segment.value)
            updated[line.index] = _run_deferred(line, analysis, updated, env)
            segment.reset()
        elif analysis.needs_subtotal(line.index):
            updated[line.index] = _run_deferred(line, analysis, updated, env)
        elif not analysis.is_deferred(line.index) and updated[line.index].value is not None:
            segment.add(updated[line.index].value)
    return tuple(updated)


class ExpressionEngine:
    """Evaluates whole documents. Not safe to share between threads."""

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.environment = Environment()

    def evaluate_all(self, source: str) -> EvaluationResult:
        self.environment.clear()

        lines = parse_lines(source)
        analysis = analyze([line.statement for line in lines])
        logger.debug(
            "Evaluating %d lines (%d aggregate-dependent, %d subtotal-dependent)",
            len(lines),
            sum(1 for line in lines if analysis.is_deferred(line.index)),
            sum(1 for line in lines if analysis.needs_subtotal(line.index)),
        )

        results = evaluate_independent(lines, analysis, self.environment)

        aggregates = compute_aggregates(results, analysis)
        _store_aggregate(self.environment, AggregateSlot.SUM, aggregates.sum)
        _store_aggregate(self.environment, AggregateSlot.AVG, aggregates.avg)
        logger.debug("Aggregates: sum=%s avg=%s", aggregates.sum, aggregates.avg)

        results = evaluate_deferred(lines, analysis, results, self.environment)
        results = evaluate_subtotals(lines, analysis, results, self.environment)

        return EvaluationResult(
            line_results=[r.model_copy(update={"settings": self.settings}) for r in results],
            sum=aggregates.total,
            settings=self.settings,
        )

    def reset(self) -> None:
        self.environment.clear()
