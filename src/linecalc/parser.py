"""Recursive descent parser for a single calculator line.

Grammar (lowest to highest binding):
    line        = COMMENT* (assignment | expr)? COMMENT?
    assignment  = words "=" expr
    expr        = additive
    additive    = mul (("+" | "-" | "on" | "off") mul)*
    mul         = power (("*" | "/" | "mod" | "of") power)*
    power       = unary ("^" power)?
    unary       = "-" unary | postfix
    postfix     = primary "%"*
    primary     = NUMBER | CURRENCY NUMBER | words | AGGREGATE | "=subtotal" | "(" expr ")"
    words       = IDENT+

Percent sugar is rewritten while parsing:
    a + b%   ->  PercentAdjust(on, b%, a)
    a - b%   ->  PercentAdjust(off, b%, a)
    a * b%   ->  PercentOf(b%, a)
    a of b   ->  PercentOf(a, b)
    a on b   ->  PercentAdjust(on, a, b)
"""

from . import ast
from .lexer import tokenize
from .tokens import SourceRange, Token, TokenKind

# Words the parser treats as operators when they appear between operands.
OPERATOR_WORDS = ("of", "on", "off", "mod")

AGGREGATE_TOKENS = {
    TokenKind.SUM: ast.AggregateKind.SUM,
    TokenKind.TOTAL: ast.AggregateKind.TOTAL,
    TokenKind.AVG: ast.AggregateKind.AVG,
    TokenKind.AVERAGE: ast.AggregateKind.AVERAGE,
    TokenKind.PREV: ast.AggregateKind.PREV,
}


class ParseError(Exception):
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


class UnexpectedTokenError(ParseError):
    def __init__(self, token: Token, expected: str):
        super().__init__(f"Unexpected token, expected {expected}", token.range)
        self.token = token
        self.expected = expected


class UnexpectedEndOfInputError(ParseError):
    def __init__(self):
        super().__init__("Unexpected end of input")


class InvalidExpressionError(ParseError):
    def __init__(self, range: SourceRange):
        super().__init__("Invalid expression", range)


class Parser:
    """Parses the tokens of one line into an optional statement."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[idx]

    def at(self, *kinds: TokenKind) -> bool:
        return self.peek().kind in kinds

    def advance(self) -> Token:
        tok = self.peek()
        if self.pos < len(self.tokens):
            self.pos += 1
        return tok

    def expect(self, kind: TokenKind, expected: str) -> Token:
        if self.at(kind):
            return self.advance()
        if self.at(TokenKind.EOF, TokenKind.COMMENT):
            raise UnexpectedEndOfInputError()
        raise UnexpectedTokenError(self.peek(), expected)

    def _words(self, start: int) -> tuple[str, SourceRange, int] | None:
        """Collect the run of identifiers beginning at `start`.

        Returns the space-joined name, its range and the number of tokens,
        or None if `start` is not an identifier. An operator word ends the
        run unless it is the first word.
        """
        words: list[str] = []
        rng = None
        idx = start
        while idx < len(self.tokens):
            tok = self.tokens[idx]
            if tok.kind != TokenKind.IDENTIFIER:
                break
            if words and tok.is_word(*OPERATOR_WORDS):
                break
            words.append(tok.value)
            rng = tok.range if rng is None else rng.union(tok.range)
            idx += 1

        if not words:
            return None
        return " ".join(words), rng, len(words)

    def parse_line(self) -> ast.ExpressionStmt | ast.Assignment | None:
        """Parse a complete line. Returns None if the line has no content."""
        while self.at(TokenKind.COMMENT):
            self.advance()

        if self.at(TokenKind.EOF):
            return None

        words = self._words(self.pos)
        if words is not None:
            name, name_range, count = words
            if self.peek(count).kind == TokenKind.EQUALS:
                self.pos += count + 1
                value = self.parse_expression()
                self._finish(value)
                return ast.Assignment(name=name, name_range=name_range, value=value)

        expr = self.parse_expression()
        self._finish(expr)
        return ast.ExpressionStmt(expr=expr)

    def _finish(self, expr: ast.Expr) -> None:
        # Trailing words are tolerated ("10 apples"); a stray '=' is not.
        if self.at(TokenKind.EQUALS):
            raise InvalidExpressionError(expr.range.union(self.peek().range))

    def parse_expression(self) -> ast.Expr:
        return self.parse_additive()

    def parse_additive(self) -> ast.Expr:
        left = self.parse_multiplicative()

        while True:
            tok = self.peek()
            if tok.is_word("on", "off"):
                self.advance()
                right = self.parse_multiplicative()
                kind = ast.PercentAdjustKind(tok.value.lower())
                left = ast.PercentAdjust(
                    kind=kind, percent=left, base=right, range=left.range.union(right.range)
                )
                continue

            if tok.kind not in (TokenKind.PLUS, TokenKind.MINUS):
                return left

            self.advance()
            right = self.parse_multiplicative()
            rng = left.range.union(right.range)
            is_add = tok.kind == TokenKind.PLUS

            if isinstance(right, ast.Percent):
                kind = ast.PercentAdjustKind.ON if is_add else ast.PercentAdjustKind.OFF
                left = ast.PercentAdjust(kind=kind, percent=right, base=left, range=rng)
            else:
                op = ast.BinaryOperator.ADD if is_add else ast.BinaryOperator.SUBTRACT
                left = ast.BinaryOp(op=op, left=left, right=right, range=rng)

    def parse_multiplicative(self) -> ast.Expr:
        left = self.parse_exponentiation()

        while True:
            tok = self.peek()
            if tok.is_word("of"):
                self.advance()
                right = self.parse_exponentiation()
                left = ast.PercentOf(percent=left, base=right, range=left.range.union(right.range))
                continue

            if tok.kind == TokenKind.STAR:
                op = ast.BinaryOperator.MULTIPLY
            elif tok.kind == TokenKind.SLASH:
                op = ast.BinaryOperator.DIVIDE
            elif tok.is_word("mod"):
                op = ast.BinaryOperator.MODULO
            else:
                return left

            self.advance()
            right = self.parse_exponentiation()
            rng = left.range.union(right.range)

            if op == ast.BinaryOperator.MULTIPLY and isinstance(right, ast.Percent):
                left = ast.PercentOf(percent=right, base=left, range=rng)
            else:
                left = ast.BinaryOp(op=op, left=left, right=right, range=rng)

    def parse_exponentiation(self) -> ast.Expr:
        left = self.parse_unary()

        # Right-associative
        if self.at(TokenKind.CARET):
            self.advance()
            right = self.parse_exponentiation()
            return ast.BinaryOp(
                op=ast.BinaryOperator.POWER,
                left=left,
                right=right,
                range=left.range.union(right.range),
            )

        return left

    def parse_unary(self) -> ast.Expr:
        if self.at(TokenKind.MINUS):
            tok = self.advance()
            operand = self.parse_unary()
            return ast.Negate(operand=operand, range=tok.range.union(operand.range))
        return self.parse_postfix()

    def parse_postfix(self) -> ast.Expr:
        expr = self.parse_primary()

        while self.at(TokenKind.PERCENT):
            tok = self.advance()
            expr = ast.Percent(operand=expr, range=expr.range.union(tok.range))

        return expr

    def parse_primary(self) -> ast.Expr:
        tok = self.peek()

        if tok.kind == TokenKind.NUMBER:
            self.advance()
            return ast.Number(value=tok.value, range=tok.range)

        if tok.kind == TokenKind.CURRENCY:
            self.advance()
            number = self.expect(TokenKind.NUMBER, "number after currency symbol")
            return ast.CurrencyNumber(
                value=number.value, symbol=tok.value, range=tok.range.union(number.range)
            )

        if tok.kind == TokenKind.IDENTIFIER:
            name, rng, count = self._words(self.pos)
            self.pos += count
            return ast.Variable(name=name, range=rng)

        if tok.kind in AGGREGATE_TOKENS:
            self.advance()
            return ast.Aggregate(kind=AGGREGATE_TOKENS[tok.kind], range=tok.range)

        if tok.kind == TokenKind.SUBTOTAL:
            self.advance()
            return ast.Subtotal(range=tok.range)

        if tok.kind == TokenKind.LPAREN:
            self.advance()
            inner = self.parse_expression()
            rparen = self.expect(TokenKind.RPAREN, ")")
            return ast.Paren(inner=inner, range=tok.range.union(rparen.range))

        if tok.kind in (TokenKind.EOF, TokenKind.COMMENT):
            raise UnexpectedEndOfInputError()

        raise UnexpectedTokenError(
            tok, "number, variable, =sum, =total, =avg, =average, =prev, =subtotal, or ("
        )


def parse_line(line: str) -> ast.ExpressionStmt | ast.Assignment | None:
    """Parse one line of calculator text into a statement (or None)."""
    return Parser(tokenize(line)).parse_line()
