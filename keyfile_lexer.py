"""
Keyfile Tokenizer
=================

Character-level tokenizer for LS-Dyna style keyword files.

The tokenizer is a single pass over the input text. It keeps two pieces of
state: whether the cursor sits at the start of a line, and the current
1-based line number. Line position matters because two characters only have
a special meaning in column one:

- ``$`` starts a comment line; the whole line, newline included, becomes a
  single ``COMMENT`` token and the line counter advances.
- ``*`` starts a keyword; it becomes an ``ASTERISK`` token.

Everywhere else those characters are ordinary word text.

Usage:
    >>> lexer = KeyfileLexer("*NODE\\n1,0.0,0.0,1.5\\n")
    >>> [t.kind.name for t in lexer][:3]
    ['ASTERISK', 'WORD', 'NEWLINE']
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class TokenKind(Enum):
    """Kinds of tokens produced by the tokenizer"""
    WHITESPACE = "whitespace"
    NEWLINE = "newline"
    COMMENT = "comment"
    COMMA = "comma"
    ASTERISK = "asterisk"
    WORD = "word"
    NUMBER = "number"
    END_OF_INPUT = "end_of_input"


class LexerState(Enum):
    AT_LINE_START = 0
    MID_LINE = 1


@dataclass(frozen=True)
class Token:
    """A token with its exact source text and the line it starts on"""
    kind: TokenKind
    text: str
    line: int


# Character classification. These are pure functions of a single character
# so the tokenizer never depends on the process locale.

_DIGITS = frozenset("0123456789")
_BLANKS = frozenset(" \t\f\v\r")


def is_newline(c: str) -> bool:
    return c == "\n"


def is_blank(c: str) -> bool:
    """Whitespace other than newline"""
    return c in _BLANKS


def is_digit(c: str) -> bool:
    return c in _DIGITS


def starts_number(c: str) -> bool:
    return is_digit(c) or c == "-"


def ends_word(c: str) -> bool:
    return is_newline(c) or is_blank(c) or c == ","


def token_shape(c: str, at_line_start: bool) -> TokenKind:
    """Decide which kind of token begins with character ``c``

    An empty string stands for end of input.
    """
    if c == "":
        return TokenKind.END_OF_INPUT
    if at_line_start:
        if c == "$":
            return TokenKind.COMMENT
        if c == "*":
            return TokenKind.ASTERISK
    if is_newline(c):
        return TokenKind.NEWLINE
    if is_blank(c):
        return TokenKind.WHITESPACE
    if c == ",":
        return TokenKind.COMMA
    if starts_number(c):
        return TokenKind.NUMBER
    return TokenKind.WORD


class KeyfileLexer:
    """Stateful, single-pass tokenizer over keyfile text

    Call ``next_token()`` until a token of kind ``END_OF_INPUT`` comes back.
    Once the end is reached every further call returns that same final token.
    Iterating over the lexer yields the remaining tokens, ``END_OF_INPUT``
    included, and then stops.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.state = LexerState.AT_LINE_START
        self.token_count = 0
        self._end_token = None

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.kind == TokenKind.END_OF_INPUT:
                return

    def _peek(self) -> str:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return ""

    def next_token(self) -> Token:
        """Consume and return the next token"""
        if self._end_token is not None:
            return self._end_token

        at_line_start = self.state == LexerState.AT_LINE_START
        kind = token_shape(self._peek(), at_line_start)

        if kind == TokenKind.COMMENT:
            token = self._accept_comment()
        elif kind == TokenKind.ASTERISK:
            token = self._accept_single(kind)
        elif kind == TokenKind.NEWLINE:
            token = self._accept_newline()
        elif kind == TokenKind.WHITESPACE:
            token = self._accept_while(kind, is_blank)
        elif kind == TokenKind.COMMA:
            token = self._accept_single(kind)
        elif kind == TokenKind.NUMBER:
            token = self._accept_number()
        elif kind == TokenKind.WORD:
            token = self._accept_while(kind, lambda c: not ends_word(c))
        else:
            token = Token(TokenKind.END_OF_INPUT, "", self.line)
            self._end_token = token

        self.token_count += 1
        return token

    def _accept_comment(self) -> Token:
        # Skip the '$'; the comment text runs to the end of the line and the
        # terminating newline is swallowed with it.
        line = self.line
        start = self.pos + 1
        end = self.text.find("\n", start)
        if end < 0:
            self.pos = len(self.text)
            text = self.text[start:]
        else:
            self.pos = end + 1
            text = self.text[start:end]
            self.line += 1
        self.state = LexerState.AT_LINE_START
        return Token(TokenKind.COMMENT, text, line)

    def _accept_single(self, kind: TokenKind) -> Token:
        c = self.text[self.pos]
        self.pos += 1
        self.state = LexerState.MID_LINE
        return Token(kind, c, self.line)

    def _accept_newline(self) -> Token:
        token = Token(TokenKind.NEWLINE, "\n", self.line)
        self.pos += 1
        self.line += 1
        self.state = LexerState.AT_LINE_START
        return token

    def _accept_while(self, kind: TokenKind, predicate) -> Token:
        start = self.pos
        self.pos += 1
        while self.pos < len(self.text) and predicate(self.text[self.pos]):
            self.pos += 1
        self.state = LexerState.MID_LINE
        return Token(kind, self.text[start:self.pos], self.line)

    def _accept_digits(self) -> None:
        while self.pos < len(self.text) and is_digit(self.text[self.pos]):
            self.pos += 1

    def _accept_number(self) -> Token:
        """Greedy match of  -? digits ( . digits )? ( [eE] [+-]? digits )?"""
        start = self.pos
        if self._peek() == "-":
            self.pos += 1
        self._accept_digits()

        if self._peek() == ".":
            self.pos += 1
            self._accept_digits()

        if self._peek() in ("e", "E"):
            self.pos += 1
            if self._peek() in ("+", "-"):
                self.pos += 1
            self._accept_digits()

        self.state = LexerState.MID_LINE
        return Token(TokenKind.NUMBER, self.text[start:self.pos], self.line)
