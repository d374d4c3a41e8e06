"""Parser for RCS ``,v`` files as stored in a CVS repository.

Reads the admin header (``head``, ``symbols``, ...), the delta tree
(revision, date, author, state, branches, next), the description and the
per-revision log/text, then reconstructs trunk revision contents:

* The head revision's text is stored in full.
* Each older trunk revision is stored as a reverse diff (``aN M`` /
  ``dN M`` commands) against the next newer revision.

Branch revisions are forward diffs from their branch point; their
contents are not reconstructed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

_TOKEN_PATTERN = re.compile(rb"@(?:[^@]|@@)*@|[;:]|[^\s;:@]+", re.DOTALL)
_REVISION_PATTERN = re.compile(rb"^\d+(?:\.\d+)*$")
_DIFF_COMMAND = re.compile(rb"^([ad])(\d+) (\d+)")


class RcsParseError(ValueError):
    """The input is not a well-formed RCS file."""


@dataclass
class Delta:
    revision: str
    date: datetime
    author: str
    state: str = "Exp"
    branches: list[str] = field(default_factory=list)
    next: str = ""
    log: str = ""
    text: bytes = b""

    @property
    def is_dead(self) -> bool:
        return self.state == "dead"


@dataclass
class RcsFile:
    head: str = ""
    symbols: dict[str, str] = field(default_factory=dict)
    description: str = ""
    deltas: dict[str, Delta] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def trunk_revisions(self) -> list[Delta]:
        """Trunk deltas from oldest to newest."""
        chain: list[Delta] = []
        seen: set[str] = set()
        revision = self.head
        while revision and revision not in seen:
            seen.add(revision)
            delta = self.deltas.get(revision)
            if delta is None:
                raise RcsParseError(f"missing delta for revision {revision}")
            chain.append(delta)
            revision = delta.next
        chain.reverse()
        return chain

    def trunk_texts(self) -> dict[str, bytes]:
        """Full contents of every trunk revision, keyed by revision."""
        texts: dict[str, bytes] = {}
        newest_first = list(reversed(self.trunk_revisions()))
        if not newest_first:
            return texts
        current = newest_first[0].text
        texts[newest_first[0].revision] = current
        for delta in newest_first[1:]:
            current = apply_reverse_diff(current, delta.text)
            texts[delta.revision] = current
        return texts

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def branches(self) -> list[str]:
        return sorted(
            name for name, rev in self.symbols.items() if is_branch_number(rev)
        )

    def tags(self) -> dict[str, str]:
        return {
            name: rev
            for name, rev in self.symbols.items()
            if not is_branch_number(rev)
        }


def is_branch_number(revision: str) -> bool:
    """True for magic branch numbers (``1.2.0.4``) and vendor branches (``1.1.1``)."""
    parts = revision.split(".")
    if len(parts) % 2 == 1:
        return True
    return len(parts) >= 4 and parts[-2] == "0"


def is_trunk_revision(revision: str) -> bool:
    return revision.count(".") == 1


# ---------------------------------------------------------------------------
# Diff application
# ---------------------------------------------------------------------------


def apply_reverse_diff(text: bytes, diff: bytes) -> bytes:
    """Apply an RCS ``a``/``d`` diff to *text* and return the result.

    Line numbers in the diff refer to *text*.
    """
    lines = text.splitlines(keepends=True)
    commands = diff.splitlines(keepends=True)
    result: list[bytes] = []
    consumed = 0
    index = 0
    while index < len(commands):
        match = _DIFF_COMMAND.match(commands[index])
        if not match:
            raise RcsParseError(f"bad diff command: {commands[index]!r}")
        index += 1
        op, start, count = match.group(1), int(match.group(2)), int(match.group(3))
        if op == b"d":
            if start - 1 < consumed:
                raise RcsParseError("diff commands out of order")
            result.extend(lines[consumed : start - 1])
            consumed = start - 1 + count
        else:
            if start < consumed:
                raise RcsParseError("diff commands out of order")
            result.extend(lines[consumed:start])
            consumed = start
            result.extend(commands[index : index + count])
            index += count
    result.extend(lines[consumed:])
    return b"".join(result)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class _Tokens:
    def __init__(self, data: bytes) -> None:
        self._tokens = _TOKEN_PATTERN.findall(data)
        self._pos = 0

    def peek(self, offset: int = 0) -> bytes | None:
        pos = self._pos + offset
        return self._tokens[pos] if pos < len(self._tokens) else None

    def next(self) -> bytes:
        token = self.peek()
        if token is None:
            raise RcsParseError("unexpected end of file")
        self._pos += 1
        return token

    def expect(self, value: bytes) -> None:
        token = self.next()
        if token != value:
            raise RcsParseError(f"expected {value!r}, got {token!r}")

    def until_semicolon(self) -> list[bytes]:
        values = []
        while (token := self.next()) != b";":
            values.append(token)
        return values

    def string(self) -> bytes:
        token = self.next()
        if not (token.startswith(b"@") and token.endswith(b"@")):
            raise RcsParseError(f"expected @-string, got {token!r}")
        return token[1:-1].replace(b"@@", b"@")


def _text(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def _word(value: bytes) -> str:
    if value.startswith(b"@") and value.endswith(b"@") and len(value) >= 2:
        value = value[1:-1].replace(b"@@", b"@")
    return _text(value)


def _parse_date(value: str) -> datetime:
    parts = [int(p) for p in value.split(".")]
    if len(parts) != 6:
        raise RcsParseError(f"bad date: {value}")
    if parts[0] < 100:
        parts[0] += 1900
    return datetime(*parts, tzinfo=timezone.utc)


def _is_delta_start(tokens: _Tokens) -> bool:
    token = tokens.peek()
    return (
        token is not None
        and _REVISION_PATTERN.match(token) is not None
        and tokens.peek(1) == b"date"
    )


def parse_rcs(data: bytes) -> RcsFile:
    """Parse the contents of an RCS file.

    Raises:
        RcsParseError: If *data* is not a well-formed RCS file.
    """
    tokens = _Tokens(data)
    rcs = RcsFile()

    # Admin section
    while tokens.peek() is not None and not _is_delta_start(tokens):
        keyword = tokens.next()
        if keyword == b"desc":
            raise RcsParseError("desc before delta section")
        if keyword == b"symbols":
            values = tokens.until_semicolon()
            for name, colon, rev in zip(values[0::3], values[1::3], values[2::3]):
                if colon != b":":
                    raise RcsParseError("malformed symbols list")
                rcs.symbols[_word(name)] = _text(rev)
        elif keyword == b"head":
            values = tokens.until_semicolon()
            rcs.head = _text(values[0]) if values else ""
        else:
            tokens.until_semicolon()

    # Delta tree
    while _is_delta_start(tokens):
        revision = _text(tokens.next())
        delta = Delta(revision=revision, date=datetime.min, author="")
        while tokens.peek() not in (b"desc", None) and not _is_delta_start(tokens):
            keyword = tokens.next()
            values = tokens.until_semicolon()
            if keyword == b"date":
                delta.date = _parse_date(_text(values[0]))
            elif keyword == b"author":
                delta.author = _word(values[0]) if values else ""
            elif keyword == b"state":
                delta.state = _word(values[0]) if values else ""
            elif keyword == b"branches":
                delta.branches = [_text(v) for v in values]
            elif keyword == b"next":
                delta.next = _text(values[0]) if values else ""
        rcs.deltas[revision] = delta

    tokens.expect(b"desc")
    rcs.description = _text(tokens.string())

    # Delta texts
    while tokens.peek() is not None:
        revision = _text(tokens.next())
        delta = rcs.deltas.get(revision)
        if delta is None:
            raise RcsParseError(f"text for unknown revision {revision}")
        while (keyword := tokens.peek()) is not None and keyword != b"text":
            tokens.next()
            if keyword == b"log":
                delta.log = _text(tokens.string())
            else:
                tokens.next()
        tokens.expect(b"text")
        delta.text = tokens.string()

    return rcs


def parse_rcs_file(path: Path | str) -> RcsFile:
    """Read and parse the RCS file at *path*."""
    return parse_rcs(Path(path).read_bytes())
