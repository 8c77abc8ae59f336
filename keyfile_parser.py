#!/usr/bin/env python3
"""
LS-Dyna Keyfile Parser
======================

Keyword-driven parser for a simplified LS-Dyna keyfile format.

This module provides:
1. A section state machine driven by ``*KEYWORD`` lines
2. Card readers for NODE, ELEMENT_SOLID/SHELL/BEAM and PART/PART_INERTIA
3. Line-numbered errors for malformed cards and duplicate element ids
4. Sequential multi-file parsing into one shared mesh database

All other keyword sections are skipped token by token until the next
keyword. ELEMENT cards must always carry 8 node fields, with unused slots
padded with 0, whatever the element keyword.

Usage:
    >>> parser = KeyfileParser()
    >>> summary = parser.parse_text("*NODE\\n1,0.0,0.0,1.5\\n")
    >>> parser.database.lookup_node(1)
    Node(id=1, x=0.0, y=0.0, z=1.5)

    >>> parser = KeyfileParser()
    >>> for path in ['body.k', 'wheels.k']:
    ...     parser.parse_file(path)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO, Union

from keyfile_errors import (DuplicateElementIdError, InvalidInputPathError,
                            KeyfileError, MalformedCardError,
                            UnreadableFileError)
from keyfile_lexer import KeyfileLexer, Token, TokenKind
from mesh_database import NODES_PER_ELEMENT, Element, MeshDatabase, Node

logger = logging.getLogger(__name__)

# Input files are single-byte, ASCII compatible text
KEYFILE_ENCODING = "latin-1"

PROGRESS_INTERVAL = 100000


class Section(Enum):
    """Parser state: which kind of keyword section is being read"""
    AWAITING_KEYWORD = "awaiting_keyword"
    AFTER_ASTERISK = "after_asterisk"
    NODE = "node"
    ELEMENT = "element"
    PART = "part"
    SKIP = "skip"


KEYWORD_SECTIONS = {
    "NODE": Section.NODE,
    "ELEMENT_SOLID": Section.ELEMENT,
    "ELEMENT_SHELL": Section.ELEMENT,
    "ELEMENT_BEAM": Section.ELEMENT,
    "PART": Section.PART,
    "PART_INERTIA": Section.PART,
}

# Token kind that starts a record in each data section
RECORD_START = {
    Section.NODE: TokenKind.NUMBER,
    Section.ELEMENT: TokenKind.NUMBER,
    Section.PART: TokenKind.WORD,
}

SEPARATORS = (TokenKind.WHITESPACE, TokenKind.COMMA)
LINE_ENDS = (TokenKind.NEWLINE, TokenKind.END_OF_INPUT)


@dataclass
class ParseSummary:
    """Counts reported after parsing one input"""
    source: str
    tokens: int
    nodes_added: int
    elements_added: int
    parts_added: Dict[int, str]
    total_nodes: int
    total_elements: int
    parts: Dict[int, str] = field(default_factory=dict)


def _describe(token: Token) -> str:
    if token.kind == TokenKind.END_OF_INPUT:
        return "end of input"
    if token.kind == TokenKind.NEWLINE:
        return "end of line"
    return f"{token.kind.value} '{token.text}'"


class KeyfileParser:
    """Parser that fills a MeshDatabase from keyfile text

    Several inputs can be parsed one after the other; each starts with a
    fresh section state but appends to the same database, so element id
    uniqueness is enforced across all of them.
    """

    def __init__(self, database: Optional[MeshDatabase] = None):
        self.database = database if database is not None else MeshDatabase()
        self.summaries: List[ParseSummary] = []
        self.source = "<string>"
        self._lexer: Optional[KeyfileLexer] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse_file(self, filepath: Union[str, Path]) -> ParseSummary:
        """Read a keyfile from disk and parse it into the database

        Raises:
            InvalidInputPathError: If the path is missing or not a regular file
            UnreadableFileError: If the file exists but cannot be read
            MalformedCardError: If a NODE, ELEMENT or PART card is malformed
            DuplicateElementIdError: If an element id was already seen
        """
        path = Path(filepath)
        try:
            if not path.exists():
                raise InvalidInputPathError(f"File does not exist: {path}")
            if not path.is_file():
                raise InvalidInputPathError(f"Path is not a regular file: {path}")
        except OSError as e:
            raise InvalidInputPathError(f"Path is not accessible: {path} ({e})") from e

        try:
            with open(path, 'r', encoding=KEYFILE_ENCODING) as f:
                text = f.read()
        except PermissionError as e:
            raise UnreadableFileError(f"Permission denied: {path}") from e
        except OSError as e:
            raise UnreadableFileError(f"The file exists, but it could not be read: {path} ({e})") from e

        return self.parse_text(text, source=str(path))

    def parse_files(self, filepaths: Iterable[Union[str, Path]]) -> List[ParseSummary]:
        """Parse several keyfiles in sequence into the same database"""
        return [self.parse_file(path) for path in filepaths]

    def parse_stream(self, stream: TextIO, source: Optional[str] = None) -> ParseSummary:
        """Parse everything readable from an open text or binary stream"""
        data = stream.read()
        if isinstance(data, bytes):
            data = data.decode(KEYFILE_ENCODING)
        if source is None:
            source = getattr(stream, 'name', '<stream>')
        return self.parse_text(data, source=str(source))

    def parse_text(self, text: str, source: str = "<string>") -> ParseSummary:
        """Parse keyfile text into the database and report what was added"""
        db = self.database
        nodes_before = db.node_count
        elements_before = db.element_count
        parts_before = dict(db.part_names)

        logger.info("Reading from %s", source)
        self.source = source
        self._lexer = KeyfileLexer(text)
        try:
            self._run()
        except KeyfileError as e:
            if e.source is None:
                e.source = source
            raise
        finally:
            tokens = self._lexer.token_count
            self._lexer = None

        parts_added = {pid: name for pid, name in db.part_names.items()
                       if parts_before.get(pid) != name}
        summary = ParseSummary(
            source=source,
            tokens=tokens,
            nodes_added=db.node_count - nodes_before,
            elements_added=db.element_count - elements_before,
            parts_added=parts_added,
            total_nodes=db.node_count,
            total_elements=db.element_count,
            parts=dict(db.part_names),
        )
        self.summaries.append(summary)
        logger.info("Total number of tokens found in %s: %d", source, tokens)
        logger.info("  %d nodes, %d elements, %d parts added",
                    summary.nodes_added, summary.elements_added, len(parts_added))
        return summary

    # ------------------------------------------------------------------
    # Section state machine
    # ------------------------------------------------------------------

    def _next(self) -> Token:
        """Next token from the lexer, with comment lines dropped"""
        while True:
            token = self._lexer.next_token()
            if self._lexer.token_count % PROGRESS_INTERVAL == 0:
                logger.debug("%s: %d tokens read", self.source, self._lexer.token_count)
            if token.kind != TokenKind.COMMENT:
                return token

    def _run(self) -> None:
        section = Section.AWAITING_KEYWORD
        while True:
            token = self._next()
            if token.kind == TokenKind.END_OF_INPUT:
                return

            if section in (Section.AWAITING_KEYWORD, Section.SKIP):
                if token.kind == TokenKind.ASTERISK:
                    section = Section.AFTER_ASTERISK
            elif section == Section.AFTER_ASTERISK:
                section = self._match_keyword(token)
            else:
                section = self._in_section(section, token)

    def _match_keyword(self, token: Token) -> Section:
        if token.kind != TokenKind.WORD:
            return Section.AWAITING_KEYWORD
        section = KEYWORD_SECTIONS.get(token.text.upper(), Section.SKIP)
        if section == Section.SKIP:
            logger.debug("Line %d: skipping *%s section", token.line, token.text)
        return section

    def _in_section(self, section: Section, token: Token) -> Section:
        if token.kind in (TokenKind.WHITESPACE, TokenKind.NEWLINE):
            return section
        if token.kind == TokenKind.ASTERISK:
            return Section.AFTER_ASTERISK
        if token.kind != RECORD_START[section]:
            # Anything unexpected ends the section
            return Section.AWAITING_KEYWORD

        if section == Section.NODE:
            self._read_node(token)
        elif section == Section.ELEMENT:
            self._read_element(token)
        else:
            self._read_part(token)
        return section

    # ------------------------------------------------------------------
    # Card readers
    # ------------------------------------------------------------------

    def _next_field(self, card: str, after: str) -> Token:
        """Consume one field separator and return the Number that follows it

        A separator is whitespace or a single comma, optionally padded with
        whitespace on either side.
        """
        token = self._next()
        if token.kind not in SEPARATORS:
            raise MalformedCardError(
                f"{card} list appears to be malformed: expected a separator "
                f"after the {after}, found {_describe(token)}", token.line)

        commas = 0
        while token.kind in SEPARATORS:
            if token.kind == TokenKind.COMMA:
                commas += 1
                if commas > 1:
                    raise MalformedCardError(
                        f"{card} list appears to be malformed: empty field "
                        f"after the {after}", token.line)
            token = self._next()

        if token.kind != TokenKind.NUMBER:
            raise MalformedCardError(
                f"{card} list appears to be malformed: expected a number "
                f"after the {after}, found {_describe(token)}", token.line)
        return token

    def _skip_line(self) -> None:
        token = self._next()
        while token.kind not in LINE_ENDS:
            token = self._next()

    @staticmethod
    def _to_int(token: Token, card: str, name: str) -> int:
        try:
            return int(token.text)
        except ValueError:
            raise MalformedCardError(
                f"{card} list appears to be malformed: {name} '{token.text}' "
                "is not an integer", token.line) from None

    @staticmethod
    def _to_float(token: Token, card: str, name: str) -> float:
        try:
            return float(token.text)
        except ValueError:
            raise MalformedCardError(
                f"{card} list appears to be malformed: {name} '{token.text}' "
                "is not a number", token.line) from None

    def _read_node(self, first: Token) -> None:
        """NODE record: id, x, y, z; trailing columns are ignored"""
        node_id = self._to_int(first, "node", "node id")
        x_tok = self._next_field("node", "node id")
        y_tok = self._next_field("node", "x-coordinate")
        z_tok = self._next_field("node", "y-coordinate")
        node = Node(
            id=node_id,
            x=self._to_float(x_tok, "node", "x-coordinate"),
            y=self._to_float(y_tok, "node", "y-coordinate"),
            z=self._to_float(z_tok, "node", "z-coordinate"),
        )
        self._skip_line()
        self.database.insert_node(node)

    def _read_element(self, first: Token) -> None:
        """ELEMENT record: id, part id, then exactly 8 node slots"""
        element_id = self._to_int(first, "element", "element id")
        pid_tok = self._next_field("element", "element id")
        part_id = self._to_int(pid_tok, "element", "part id")

        slots = []
        after = "part id"
        for i in range(NODES_PER_ELEMENT):
            slot_tok = self._next_field("element", after)
            slots.append(self._to_int(slot_tok, "element", f"node {i + 1}"))
            after = f"node {i + 1}"
        self._skip_line()

        try:
            self.database.insert_element(Element(element_id, part_id, tuple(slots)))
        except DuplicateElementIdError as e:
            raise DuplicateElementIdError(e.element_id, first.line) from None

    def _read_part(self, first: Token) -> None:
        """PART card: name line (verbatim) followed by a line starting with the id"""
        pieces = [first.text]
        token = self._next()
        while token.kind not in LINE_ENDS:
            pieces.append(token.text)
            token = self._next()
        name = "".join(pieces)

        while token.kind != TokenKind.NUMBER:
            if token.kind in (TokenKind.END_OF_INPUT, TokenKind.ASTERISK):
                raise MalformedCardError(
                    f"part '{name}' has no part id before {_describe(token)}",
                    token.line)
            token = self._next()

        pid = self._to_int(token, "part", "part id")
        self.database.record_part_name(pid, name)
        logger.debug("Line %d: part %d '%s'", token.line, pid, name)
