"""Tests for expression evaluation and unit arithmetic."""

from decimal import Decimal

import pytest

from linecalc import (
    AggregateSlot,
    DivisionByZeroError,
    Environment,
    Evaluator,
    SourceRange,
    TypeMismatchError,
    UndefinedVariableError,
    Value,
    parse_line,
)
from linecalc.units import PERCENT, USD


def run(line: str, env: Environment | None = None) -> Value:
    env = env if env is not None else Environment()
    return Evaluator(env).evaluate(parse_line(line))


class TestArithmetic:
    @pytest.mark.parametrize(
        "line,expected",
        [
            ("1 + 2 * 3", "7"),
            ("(1 + 2) * 3", "9"),
            ("10 / 4", "2.5"),
            ("--5", "5"),
            ("-(2 + 3)", "-5"),
            ("3 × 4", "12"),
        ],
    )
    def test_scalar(self, line, expected):
        """Plain arithmetic on unitless numbers."""
        value = run(line)
        assert value.as_decimal == Decimal(expected)
        assert value.unit is None

    def test_division_by_zero(self):
        """Division by zero reports the whole operation's range."""
        with pytest.raises(DivisionByZeroError) as exc_info:
            run("5 / 0")
        assert exc_info.value.range == SourceRange(location=0, length=5)


class TestModulo:
    """Remainder truncates toward zero, so its sign follows the dividend."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("5 mod 2", "1"),
            ("-5 mod 2", "-1"),
            ("5 mod -2", "1"),
            ("-5 mod -2", "-1"),
            ("5.5 mod 2", "1.5"),
            ("17 MOD 5", "2"),
            ("10 mod 3 + 1", "2"),
            ("100000000000000000000000000000 mod 3", "1"),
            ("-100000000000000000000000000000 mod 7", "-5"),
        ],
    )
    def test_modulo(self, line, expected):
        """Modulo against the truncated remainder table."""
        assert run(line).as_decimal == Decimal(expected)

    def test_modulo_by_zero(self):
        """'5 mod 0' is a division by zero."""
        with pytest.raises(DivisionByZeroError):
            run("5 mod 0")

    def test_modulo_rejects_units(self):
        """Modulo only takes unitless operands."""
        with pytest.raises(TypeMismatchError, match="only supported for unitless"):
            run("$10 mod 3")


class TestPower:
    def test_right_associative(self):
        """'2 ^ 3 ^ 2' is 512, not 64."""
        assert run("2 ^ 3 ^ 2").as_decimal == Decimal(512)

    def test_zero_exponent(self):
        """Anything to the power zero is one."""
        assert run("7 ^ 0").as_decimal == Decimal(1)

    def test_negative_exponent(self):
        """Negative exponents give reciprocals."""
        assert run("2 ^ -1").as_decimal == Decimal("0.5")

    def test_fractional_power_of_negative(self):
        """A negative base with a fractional exponent has no decimal result."""
        with pytest.raises(TypeMismatchError, match="not a valid number"):
            run("-8 ^ 0.5")

    def test_overflow(self):
        """Results past the decimal exponent limit are rejected."""
        with pytest.raises(TypeMismatchError, match="not a valid number"):
            run("10 ^ 1000000000")

    def test_exponent_with_unit(self):
        """Exponents must be unitless."""
        with pytest.raises(TypeMismatchError, match="Exponent cannot have a unit"):
            run("2 ^ $3")

    def test_currency_base_keeps_currency(self):
        """'$2 ^ 2' stays in dollars."""
        value = run("$2 ^ 2")
        assert value.as_decimal == Decimal(4)
        assert value.unit == USD


class TestUnits:
    def test_currency_plus_scalar(self):
        """A scalar adopts the currency of the other operand."""
        value = run("$10 + 5")
        assert value.as_decimal == Decimal(15)
        assert value.unit == USD

    def test_different_currencies(self):
        """Dollars and euros do not add."""
        with pytest.raises(TypeMismatchError, match="different currencies"):
            run("$10 + €5")

    def test_currency_and_percent(self):
        """A bare percent does not mix with a currency under '+'."""
        with pytest.raises(TypeMismatchError, match="different units"):
            run("$10 + (5%)")

    def test_currency_times_scalar(self):
        """Scaling a currency amount keeps the currency."""
        assert run("3 * $4") == Value.of(12, USD)

    def test_currency_times_currency(self):
        """Currency squared is meaningless."""
        with pytest.raises(TypeMismatchError, match="two currency values"):
            run("$2 * $3")

    def test_percent_times_scalar(self):
        """'5% * 2' is not sugar, and a percent is not a scalar."""
        with pytest.raises(TypeMismatchError, match="Unsupported unit multiplication"):
            run("5% * 2")

    def test_currency_ratio_is_scalar(self):
        """Dividing two amounts of one currency gives a ratio."""
        value = run("$100 / $25")
        assert value.as_decimal == Decimal(4)
        assert value.unit is None

    def test_scalar_over_currency(self):
        """'per dollar' values are not supported."""
        with pytest.raises(TypeMismatchError, match="Unsupported unit division"):
            run("10 / $2")


class TestPercent:
    @pytest.mark.parametrize(
        "line,expected",
        [
            ("20% of 10", "2"),
            ("5% on 30", "31.5"),
            ("5% off 30", "28.5"),
            ("40 - 6%", "37.6"),
            ("30 + 5%", "31.5"),
            ("10 * 20%", "2"),
        ],
    )
    def test_percent_sugar(self, line, expected):
        """Percent sugar forms on unitless bases."""
        value = run(line)
        assert value.as_decimal == Decimal(expected)
        assert value.unit is None

    def test_percent_literal(self):
        """A percent literal carries the percent unit."""
        assert run("12.5%") == Value.of("12.5", PERCENT)

    def test_percent_of_currency(self):
        """Percent of a currency amount is a currency amount."""
        assert run("20% of $50") == Value.of(10, USD)

    def test_percent_off_currency(self):
        """Discounts keep the base currency."""
        assert run("10% off $40") == Value.of(36, USD)

    def test_currency_plus_percent(self):
        """'$50 + 10%' adds ten percent."""
        assert run("$50 + 10%") == Value.of(55, USD)

    def test_percent_overflow(self):
        """Overflow in percent sugar is a type mismatch over the whole expression."""
        with pytest.raises(TypeMismatchError, match="not a valid number") as exc_info:
            run("9 * 10 ^ 999999 + 50%")
        assert exc_info.value.range == SourceRange(location=0, length=21)


class TestVariables:
    def test_assignment_stores_value(self):
        """Assignments are visible to later statements."""
        env = Environment()
        assert run("x = 5", env).as_decimal == Decimal(5)
        assert env.get("x") == Value.of(5)
        assert run("x * 2", env).as_decimal == Decimal(10)

    def test_multi_word_variable(self):
        """Multi-word names round-trip through the environment."""
        env = Environment()
        run("my favorite number = 42", env)
        assert "my favorite number" in env
        assert run("my favorite number * 2", env).as_decimal == Decimal(84)

    def test_undefined_variable(self):
        """Unknown names report the name and its range."""
        with pytest.raises(UndefinedVariableError) as exc_info:
            run("x + 1")
        assert exc_info.value.name == "x"
        assert exc_info.value.message == "Undefined variable: x"
        assert exc_info.value.range == SourceRange(location=0, length=1)

    def test_failed_assignment_leaves_variable_unset(self):
        """Nothing is stored when the value fails."""
        env = Environment()
        with pytest.raises(DivisionByZeroError):
            run("x = 1 / 0", env)
        assert "x" not in env


class TestAggregates:
    def test_unset_aggregate(self):
        """Aggregates read before they are computed are undefined."""
        with pytest.raises(UndefinedVariableError) as exc_info:
            run("=total")
        assert exc_info.value.name == "=total"

    def test_unset_subtotal(self):
        """=subtotal outside the subtotal pass is undefined."""
        with pytest.raises(UndefinedVariableError, match="=subtotal"):
            run("=subtotal")

    def test_sum_and_total_share_a_slot(self):
        """=sum and =total are the same value."""
        env = Environment()
        env.set_aggregate(AggregateSlot.SUM, Value.of(60))
        assert run("=sum", env) == run("=total", env)

    def test_aggregates_are_not_variables(self):
        """A user variable named 'sum' does not shadow =sum."""
        env = Environment()
        env.set_aggregate(AggregateSlot.SUM, Value.of(1))
        run("sum = 99", env)
        assert run("=sum", env).as_decimal == Decimal(1)
        assert run("sum", env).as_decimal == Decimal(99)
