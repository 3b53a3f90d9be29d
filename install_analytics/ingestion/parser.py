"""Incremental CSV parsing of the install feed.

The feed is decoded chunk by chunk and rows are produced lazily, in feed
order, as soon as a complete record is available. Nothing is read from the
byte stream until the consumer asks for the next row.

Any malformed input aborts parsing with ParseError; rows are never skipped.
"""

import codecs
import csv
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterator

from install_analytics.core.exceptions import ParseError
from install_analytics.schemas.installs import REQUIRED_FEED_COLUMNS

logger = logging.getLogger(__name__)

FeedRow = dict[str, str]


class _RecordSplitter:
    """Splits decoded text into complete CSV records.

    A record ends at a newline outside quotes; quoted fields may span lines.
    CSV escapes a quote by doubling it, so a record is complete once it holds
    an even number of quote characters.
    """

    def __init__(self) -> None:
        self._tail = ""
        self._record = ""
        self._quotes = 0
        self._line_number = 0
        self._record_line = 0

    def feed(self, text: str) -> Iterator[tuple[int, str]]:
        self._tail += text
        *lines, self._tail = self._tail.split("\n")
        for line in lines:
            yield from self._add_line(line + "\n")

    def close(self) -> Iterator[tuple[int, str]]:
        if self._tail:
            tail, self._tail = self._tail, ""
            yield from self._add_line(tail)
        if self._record:
            raise ParseError(
                "Unterminated quoted field at end of feed",
                details={"line": self._record_line},
            )

    def _add_line(self, line: str) -> Iterator[tuple[int, str]]:
        self._line_number += 1
        if not self._record:
            self._record_line = self._line_number
        self._record += line
        self._quotes += line.count('"')
        if self._quotes % 2 == 0:
            record, self._record, self._quotes = self._record, "", 0
            yield self._record_line, record


def _split_fields(line_number: int, record: str) -> list[str] | None:
    if not record.strip():
        return None
    try:
        return next(csv.reader([record]))
    except csv.Error as e:
        raise ParseError(f"Malformed CSV record: {e}", details={"line": line_number}) from e


def _read_header(line_number: int, fields: list[str]) -> list[str]:
    header = [name.strip() for name in fields]
    missing = [column for column in REQUIRED_FEED_COLUMNS if column not in header]
    if missing:
        raise ParseError(
            f"Feed header is missing required columns: {', '.join(missing)}",
            details={"line": line_number, "header": header},
        )
    if len(set(header)) != len(header):
        raise ParseError("Feed header has duplicate columns", details={"header": header})
    return header


class FeedReader:
    """Push-style CSV decoder: bytes in, complete rows out."""

    def __init__(self, encoding: str = "utf-8-sig") -> None:
        self.encoding = encoding
        self.header: list[str] | None = None
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._splitter = _RecordSplitter()

    def push(self, chunk: bytes) -> Iterator[FeedRow]:
        yield from self._rows(self._splitter.feed(self._decode(chunk)))

    def finish(self) -> Iterator[FeedRow]:
        yield from self._rows(self._splitter.feed(self._decode(b"", final=True)))
        yield from self._rows(self._splitter.close())

    def _decode(self, chunk: bytes, final: bool = False) -> str:
        try:
            return self._decoder.decode(chunk, final=final)
        except UnicodeDecodeError as e:
            raise ParseError(f"Feed is not valid {self.encoding}: {e.reason}") from e

    def _rows(self, records: Iterator[tuple[int, str]]) -> Iterator[FeedRow]:
        for line_number, record in records:
            fields = _split_fields(line_number, record)
            if fields is None:
                continue
            if self.header is None:
                self.header = _read_header(line_number, fields)
                logger.debug(f"Feed columns: {self.header}")
                continue
            if len(fields) != len(self.header):
                raise ParseError(
                    f"Expected {len(self.header)} fields, found {len(fields)}",
                    details={"line": line_number},
                )
            yield dict(zip(self.header, fields, strict=True))


async def parse_feed(
    chunks: AsyncIterable[bytes],
    encoding: str = "utf-8-sig",
) -> AsyncIterator[FeedRow]:
    """Decode a header-described CSV byte stream into field -> value rows.

    Args:
        chunks: Body chunks as produced by the feed fetcher.
        encoding: Text encoding of the feed. The default strips a UTF-8 BOM.

    Yields:
        One mapping per feed record, keyed by header column name.

    Raises:
        ParseError: On undecodable bytes, a header without the required
            columns, a row whose field count differs from the header, or an
            unterminated quoted field.
    """
    reader = FeedReader(encoding)
    async for chunk in chunks:
        for row in reader.push(chunk):
            yield row
    for row in reader.finish():
        yield row
