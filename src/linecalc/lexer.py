"""Lexer: turns one line of calculator text into tokens.

The lexer never fails. Characters it does not understand become UNKNOWN
tokens and malformed numbers lex as zero; the parser decides what is an
error. Token ranges are UTF-16 offsets relative to the start of the line.
"""

from decimal import Decimal, InvalidOperation

from .tokens import SourceRange, Token, TokenKind, utf16_len

CURRENCY_SYMBOLS = frozenset("$€£¥")

# Checked longest-first so "=average" is not read as "=avg" + "erage".
AGGREGATE_KEYWORDS = [
    ("subtotal", TokenKind.SUBTOTAL),
    ("average", TokenKind.AVERAGE),
    ("total", TokenKind.TOTAL),
    ("prev", TokenKind.PREV),
    ("avg", TokenKind.AVG),
    ("sum", TokenKind.SUM),
]

SINGLE_CHAR_TOKENS = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "×": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "^": TokenKind.CARET,
    "%": TokenKind.PERCENT,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}


def _is_digit(ch: str) -> bool:
    return ch != "" and ch in "0123456789"


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


class Lexer:
    """Tokenizer for a single line."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.offset = 0  # UTF-16 offset of self.pos
        self.tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        while True:
            self._skip_whitespace()
            if self.pos >= len(self.source):
                break

            ch = self.source[self.pos]

            if ch == "#":
                self._read_comment()
            elif _is_digit(ch) or (ch == "." and _is_digit(self._peek(1))):
                self._read_number()
            elif _is_ident_start(ch):
                self._read_identifier()
            elif ch in CURRENCY_SYMBOLS:
                start = self.offset
                self._advance()
                self._emit(TokenKind.CURRENCY, start, ch)
            elif ch == "=":
                self._read_equals()
            else:
                start = self.offset
                self._advance()
                kind = SINGLE_CHAR_TOKENS.get(ch, TokenKind.UNKNOWN)
                self._emit(kind, start, ch if kind == TokenKind.UNKNOWN else None)

        self.tokens.append(Token(TokenKind.EOF, SourceRange(location=self.offset, length=0)))
        return self.tokens

    def _peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return ""

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        self.offset += utf16_len(ch)
        return ch

    def _emit(self, kind: TokenKind, start: int, value=None) -> None:
        rng = SourceRange(location=start, length=self.offset - start)
        self.tokens.append(Token(kind, rng, value))

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in " \t":
            self._advance()

    def _read_comment(self) -> None:
        start = self.offset
        self._advance()  # '#'
        text = ""
        while self.pos < len(self.source) and self.source[self.pos] not in "\r\n":
            text += self._advance()
        self._emit(TokenKind.COMMENT, start, text)

    def _read_number(self) -> None:
        start = self.offset
        text = ""
        seen_dot = False

        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if _is_digit(ch):
                text += self._advance()
            elif ch == ",":
                # Thousands separator
                self._advance()
            elif ch == "." and not seen_dot:
                seen_dot = True
                text += self._advance()
            else:
                break

        try:
            value = Decimal(text)
        except InvalidOperation:
            value = Decimal(0)
        self._emit(TokenKind.NUMBER, start, value)

    def _read_identifier(self) -> None:
        start = self.offset
        text = ""
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            text += self._advance()
        self._emit(TokenKind.IDENTIFIER, start, text)

    def _read_equals(self) -> None:
        start = self.offset
        self._advance()  # '='

        rest = self.source[self.pos :]
        for word, kind in AGGREGATE_KEYWORDS:
            if rest[: len(word)].lower() != word:
                continue
            following = rest[len(word) : len(word) + 1]
            if following and _is_ident_char(following):
                continue
            for _ in word:
                self._advance()
            self._emit(kind, start)
            return

        self._emit(TokenKind.EQUALS, start)


def tokenize(line: str) -> list[Token]:
    """Tokenize one line of text, always ending with an EOF token."""
    return Lexer(line).tokenize()
