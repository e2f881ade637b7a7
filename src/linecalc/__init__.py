"""linecalc: a line-oriented calculator language.

Every line of a document is parsed and evaluated on its own against a
shared set of variables. Lines can hold arithmetic, assignments, percent
sugar ("5% off $40"), currency amounts and document aggregates
(=sum, =avg, =prev, =subtotal).

Example:
    from linecalc import evaluate

    result = evaluate("rent = $1,200\\nfood = $400\\n=sum")
    print([line.display for line in result.line_results])
    # ['$1,200', '$400', '$1,600']
"""

__version__ = "0.1.0"

from .ast import (
    Aggregate,
    AggregateKind,
    Assignment,
    BinaryOp,
    BinaryOperator,
    CurrencyNumber,
    Expr,
    ExpressionStmt,
    Negate,
    Number,
    Paren,
    Percent,
    PercentAdjust,
    PercentAdjustKind,
    PercentOf,
    Statement,
    Subtotal,
    Variable,
)
from .dependencies import DependencyAnalysis, StatementInfo, analyze
from .engine import EvaluationResult, ExpressionEngine, LineResult, split_lines
from .environment import AggregateSlot, Environment
from .evaluator import (
    DivisionByZeroError,
    EvaluationError,
    Evaluator,
    TypeMismatchError,
    UndefinedVariableError,
)
from .lexer import Lexer, tokenize
from .parser import (
    InvalidExpressionError,
    ParseError,
    Parser,
    UnexpectedEndOfInputError,
    UnexpectedTokenError,
    parse_line,
)
from .settings import EngineSettings, SettingsError, load_settings
from .tokens import SourceRange, Token, TokenKind
from .units import Quantity, Unit, UnitKind, Value


def evaluate(source: str, settings: EngineSettings | None = None) -> EvaluationResult:
    """Evaluate a whole document with a fresh engine."""
    return ExpressionEngine(settings).evaluate_all(source)


__all__ = [
    # Lex
    "tokenize",
    "Lexer",
    "Token",
    "TokenKind",
    "SourceRange",
    # Parse
    "parse_line",
    "Parser",
    "ParseError",
    "UnexpectedTokenError",
    "UnexpectedEndOfInputError",
    "InvalidExpressionError",
    # AST
    "Expr",
    "Statement",
    "Number",
    "CurrencyNumber",
    "Variable",
    "BinaryOp",
    "BinaryOperator",
    "Negate",
    "Paren",
    "Percent",
    "PercentOf",
    "PercentAdjust",
    "PercentAdjustKind",
    "Aggregate",
    "AggregateKind",
    "Subtotal",
    "ExpressionStmt",
    "Assignment",
    # Values
    "Unit",
    "UnitKind",
    "Quantity",
    "Value",
    # Evaluate
    "Environment",
    "AggregateSlot",
    "Evaluator",
    "EvaluationError",
    "UndefinedVariableError",
    "DivisionByZeroError",
    "TypeMismatchError",
    # Document
    "analyze",
    "DependencyAnalysis",
    "StatementInfo",
    "split_lines",
    "ExpressionEngine",
    "EvaluationResult",
    "LineResult",
    "evaluate",
    # Settings
    "EngineSettings",
    "SettingsError",
    "load_settings",
]
