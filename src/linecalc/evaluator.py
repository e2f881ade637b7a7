"""Evaluator: executes a parsed statement against an Environment."""

from contextlib import contextmanager
from decimal import Decimal, DecimalException, localcontext

from . import ast
from .environment import AggregateSlot, Environment
from .tokens import SourceRange
from .units import PERCENT, Quantity, Value, currency_for_symbol, is_currency

HUNDRED = Decimal(100)

AGGREGATE_SLOTS = {
    ast.AggregateKind.SUM: AggregateSlot.SUM,
    ast.AggregateKind.TOTAL: AggregateSlot.SUM,
    ast.AggregateKind.AVG: AggregateSlot.AVG,
    ast.AggregateKind.AVERAGE: AggregateSlot.AVG,
    ast.AggregateKind.PREV: AggregateSlot.PREV,
}


class EvaluationError(Exception):
    def __init__(self, message: str, range: SourceRange | None = None):
        super().__init__(message)
        self.message = message
        self.range = range

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return (self.message, self.range) == (other.message, other.range)

    def __hash__(self) -> int:
        return hash((type(self), self.message, self.range))


class UndefinedVariableError(EvaluationError):
    def __init__(self, name: str, range: SourceRange | None = None):
        super().__init__(f"Undefined variable: {name}", range)
        self.name = name


class DivisionByZeroError(EvaluationError):
    def __init__(self, range: SourceRange | None = None):
        super().__init__("Division by zero", range)


class TypeMismatchError(EvaluationError):
    pass


def add(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    lu, ru = lhs.unit, rhs.unit
    magnitude = lhs.magnitude + rhs.magnitude

    if lu is None or ru is None or lu == ru:
        return Quantity(magnitude=magnitude, unit=lu if lu is not None else ru)
    if is_currency(lu) and is_currency(ru):
        raise TypeMismatchError("Cannot add values with different currencies", rng)
    raise TypeMismatchError("Cannot add values with different units", rng)


def subtract(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    return add(lhs, Quantity(magnitude=-rhs.magnitude, unit=rhs.unit), rng)


def multiply(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    lu, ru = lhs.unit, rhs.unit
    magnitude = lhs.magnitude * rhs.magnitude

    if lu is None and ru is None:
        return Quantity(magnitude=magnitude)
    if is_currency(lu) and ru is None:
        return Quantity(magnitude=magnitude, unit=lu)
    if is_currency(ru) and lu is None:
        return Quantity(magnitude=magnitude, unit=ru)
    if is_currency(lu) and is_currency(ru):
        raise TypeMismatchError("Cannot multiply two currency values", rng)
    raise TypeMismatchError("Unsupported unit multiplication", rng)


def divide(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    if rhs.magnitude.is_zero():
        raise DivisionByZeroError(rng)

    lu, ru = lhs.unit, rhs.unit
    magnitude = lhs.magnitude / rhs.magnitude

    if lu is None and ru is None:
        return Quantity(magnitude=magnitude)
    if is_currency(lu) and ru is None:
        return Quantity(magnitude=magnitude, unit=lu)
    if is_currency(lu) and is_currency(ru):
        # $100 / $25 is a plain ratio
        return Quantity(magnitude=magnitude)
    raise TypeMismatchError("Unsupported unit division", rng)


def modulo(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    if rhs.magnitude.is_zero():
        raise DivisionByZeroError(rng)
    if lhs.unit is not None or rhs.unit is not None:
        raise TypeMismatchError("Modulo operation only supported for unitless values", rng)

    # Decimal remainder truncates toward zero: the sign follows the dividend.
    # The integer quotient must fit in the working precision.
    try:
        with localcontext() as ctx:
            ctx.prec = max(
                ctx.prec, lhs.magnitude.adjusted() - rhs.magnitude.adjusted() + ctx.prec
            )
            remainder = lhs.magnitude % rhs.magnitude
        remainder = +remainder
    except DecimalException as e:
        raise TypeMismatchError("Modulo result is not a valid number", rng) from e
    if not remainder.is_finite():
        raise TypeMismatchError("Modulo result is not a valid number", rng)
    return Quantity(magnitude=remainder)


def power(lhs: Quantity, rhs: Quantity, rng: SourceRange | None = None) -> Quantity:
    if rhs.unit is not None:
        raise TypeMismatchError("Exponent cannot have a unit", rng)

    if rhs.magnitude.is_zero():
        result = Decimal(1)
    else:
        try:
            with localcontext() as ctx:
                result = ctx.power(lhs.magnitude, rhs.magnitude)
        except DecimalException as e:
            raise TypeMismatchError("Power result is not a valid number", rng) from e

    if not result.is_finite():
        raise TypeMismatchError("Power result is not a valid number", rng)

    unit = lhs.unit if is_currency(lhs.unit) else None
    return Quantity(magnitude=result, unit=unit)


BINARY_OPS = {
    ast.BinaryOperator.ADD: add,
    ast.BinaryOperator.SUBTRACT: subtract,
    ast.BinaryOperator.MULTIPLY: multiply,
    ast.BinaryOperator.DIVIDE: divide,
    ast.BinaryOperator.MODULO: modulo,
    ast.BinaryOperator.POWER: power,
}


@contextmanager
def _finite_result(rng: SourceRange):
    """Report decimal overflow and invalid operations as a type mismatch."""
    try:
        yield
    except DecimalException as e:
        raise TypeMismatchError("Result is not a valid number", rng) from e


def _aggregate(env: Environment, slot: AggregateSlot, name: str, rng: SourceRange) -> Value:
    value = env.get_aggregate(slot)
    if value is not None:
        return value
    if env.is_invalid_aggregate(slot):
        raise TypeMismatchError(f"{name} is not a valid number", rng)
    raise UndefinedVariableError(name, rng)


def evaluate(expr: ast.Expr, env: Environment) -> Value:
    """Evaluate an expression in an environment."""
    match expr:
        case ast.Number(value=v):
            return Value(quantity=Quantity(magnitude=v))

        case ast.CurrencyNumber(value=v, symbol=symbol, range=rng):
            unit = currency_for_symbol(symbol)
            if unit is None:
                raise TypeMismatchError(f"Unknown currency symbol {symbol}", rng)
            return Value(quantity=Quantity(magnitude=v, unit=unit))

        case ast.Variable(name=name, range=rng):
            value = env.get(name)
            if value is None:
                raise UndefinedVariableError(name, rng)
            return value

        case ast.BinaryOp(op=op, left=left, right=right, range=rng):
            lq = evaluate(left, env).quantity
            rq = evaluate(right, env).quantity
            with _finite_result(rng):
                return Value(quantity=BINARY_OPS[op](lq, rq, rng))

        case ast.Negate(operand=operand):
            q = evaluate(operand, env).quantity
            return Value(quantity=Quantity(magnitude=-q.magnitude, unit=q.unit))

        case ast.Paren(inner=inner):
            return evaluate(inner, env)

        case ast.Percent(operand=operand):
            q = evaluate(operand, env).quantity
            return Value(quantity=Quantity(magnitude=q.magnitude, unit=PERCENT))

        case ast.PercentOf(percent=percent, base=base, range=rng):
            p = evaluate(percent, env).quantity
            b = evaluate(base, env).quantity
            unit = b.unit if is_currency(b.unit) else None
            with _finite_result(rng):
                magnitude = p.magnitude / HUNDRED * b.magnitude
            return Value(quantity=Quantity(magnitude=magnitude, unit=unit))

        case ast.PercentAdjust(kind=kind, percent=percent, base=base, range=rng):
            p = evaluate(percent, env).quantity
            b = evaluate(base, env).quantity
            with _finite_result(rng):
                delta = p.magnitude / HUNDRED * b.magnitude
                if kind == ast.PercentAdjustKind.ON:
                    magnitude = b.magnitude + delta
                else:
                    magnitude = b.magnitude - delta
            if is_currency(b.unit):
                unit = b.unit
            elif is_currency(p.unit):
                unit = p.unit
            else:
                unit = None
            return Value(quantity=Quantity(magnitude=magnitude, unit=unit))

        case ast.Aggregate(kind=kind, range=rng):
            return _aggregate(env, AGGREGATE_SLOTS[kind], kind.display_name, rng)

        case ast.Subtotal(range=rng):
            return _aggregate(env, AggregateSlot.SUBTOTAL, "=subtotal", rng)

        case _:
            raise TypeError(f"unknown expr type: {type(expr)}")


class Evaluator:
    """Executes statements, storing assignments in the environment."""

    def __init__(self, environment: Environment):
        self.environment = environment

    def evaluate(self, statement: ast.ExpressionStmt | ast.Assignment) -> Value:
        match statement:
            case ast.ExpressionStmt(expr=expr):
                return evaluate(expr, self.environment)
            case ast.Assignment(name=name, value=expr):
                value = evaluate(expr, self.environment)
                self.environment.set(name, value)
                return value
            case _:
                raise TypeError(f"unknown statement type: {type(statement)}")
