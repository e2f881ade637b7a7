"""AST nodes for calculator lines."""

from decimal import Decimal
from enum import Enum
from typing import Annotated
from typing import Literal as TypingLiteral

from pydantic import BaseModel, Field

from .tokens import SourceRange


class BinaryOperator(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    MODULO = "modulo"
    POWER = "power"


class PercentAdjustKind(str, Enum):
    ON = "on"
    OFF = "off"


class AggregateKind(str, Enum):
    SUM = "sum"
    TOTAL = "total"
    AVG = "avg"
    AVERAGE = "average"
    PREV = "prev"

    @property
    def display_name(self) -> str:
        return f"={self.value}"


# Expressions - using discriminated union for type safety
class Number(BaseModel):
    type: TypingLiteral["number"] = "number"
    value: Decimal
    range: SourceRange


class CurrencyNumber(BaseModel):
    """A number written with a leading currency symbol (e.g. '$1,200')."""

    type: TypingLiteral["currency_number"] = "currency_number"
    value: Decimal
    symbol: str
    range: SourceRange


class Variable(BaseModel):
    """Variable reference; multi-word names are joined with single spaces."""

    type: TypingLiteral["variable"] = "variable"
    name: str
    range: SourceRange


class BinaryOp(BaseModel):
    type: TypingLiteral["binop"] = "binop"
    op: BinaryOperator
    left: "Expr"
    right: "Expr"
    range: SourceRange


class Negate(BaseModel):
    type: TypingLiteral["negate"] = "negate"
    operand: "Expr"
    range: SourceRange


class Paren(BaseModel):
    type: TypingLiteral["paren"] = "paren"
    inner: "Expr"
    range: SourceRange


class Percent(BaseModel):
    """Percent literal (e.g. '5%'); the magnitude is not divided by 100."""

    type: TypingLiteral["percent"] = "percent"
    operand: "Expr"
    range: SourceRange


class PercentOf(BaseModel):
    """'X% of Y' and the 'Y * X%' shorthand."""

    type: TypingLiteral["percent_of"] = "percent_of"
    percent: "Expr"
    base: "Expr"
    range: SourceRange


class PercentAdjust(BaseModel):
    """'X% on Y' / 'X% off Y' and the 'Y + X%' / 'Y - X%' shorthands."""

    type: TypingLiteral["percent_adjust"] = "percent_adjust"
    kind: PercentAdjustKind
    percent: "Expr"
    base: "Expr"
    range: SourceRange


class Aggregate(BaseModel):
    """Builtin aggregate reference (=sum, =total, =avg, =average, =prev)."""

    type: TypingLiteral["aggregate"] = "aggregate"
    kind: AggregateKind
    range: SourceRange


class Subtotal(BaseModel):
    type: TypingLiteral["subtotal"] = "subtotal"
    range: SourceRange


# Expression union type
Expr = Annotated[
    Number
    | CurrencyNumber
    | Variable
    | BinaryOp
    | Negate
    | Paren
    | Percent
    | PercentOf
    | PercentAdjust
    | Aggregate
    | Subtotal,
    Field(discriminator="type"),
]


# Statements
class ExpressionStmt(BaseModel):
    type: TypingLiteral["expression"] = "expression"
    expr: Expr


class Assignment(BaseModel):
    type: TypingLiteral["assignment"] = "assignment"
    name: str
    name_range: SourceRange
    value: Expr


Statement = Annotated[ExpressionStmt | Assignment, Field(discriminator="type")]


# Rebuild models for forward references
BinaryOp.model_rebuild()
Negate.model_rebuild()
Paren.model_rebuild()
Percent.model_rebuild()
PercentOf.model_rebuild()
PercentAdjust.model_rebuild()
ExpressionStmt.model_rebuild()
Assignment.model_rebuild()
