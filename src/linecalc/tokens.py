"""Token model shared by the lexer, parser and any read-only consumers."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


def utf16_len(text: str) -> int:
    """Length of `text` in UTF-16 code units (what editors index by)."""
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


class SourceRange(BaseModel):
    """Half-open range in UTF-16 code units (location + length)."""

    model_config = ConfigDict(frozen=True)

    location: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.location + self.length

    def union(self, other: "SourceRange") -> "SourceRange":
        start = min(self.location, other.location)
        return SourceRange(location=start, length=max(self.end, other.end) - start)

    def offset(self, delta: int) -> "SourceRange":
        return SourceRange(location=self.location + delta, length=self.length)


class TokenKind(Enum):
    # Literals
    NUMBER = "NUMBER"
    IDENTIFIER = "IDENTIFIER"
    CURRENCY = "CURRENCY"

    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    CARET = "^"
    PERCENT = "%"
    EQUALS = "="
    LPAREN = "("
    RPAREN = ")"

    # Aggregate keywords
    SUM = "=sum"
    TOTAL = "=total"
    AVG = "=avg"
    AVERAGE = "=average"
    PREV = "=prev"
    SUBTOTAL = "=subtotal"

    # Special
    COMMENT = "COMMENT"
    UNKNOWN = "UNKNOWN"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    range: SourceRange
    value: Any = None  # Decimal for numbers, text for identifiers/comments/currency

    def is_word(self, *words: str) -> bool:
        """True if this is an identifier spelling one of `words` (case-insensitive)."""
        return self.kind == TokenKind.IDENTIFIER and self.value.lower() in words
