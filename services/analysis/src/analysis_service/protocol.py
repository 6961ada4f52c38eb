"""
UCI session protocol: command encoding and incremental output decoding.

Outbound commands are plain strings (without the trailing newline). Engine
output arrives as arbitrary byte chunks; UciDecoder buffers them and yields
one event per complete line it recognizes.

Example engine output for a MultiPV 2 search:
    info depth 10 seldepth 12 multipv 1 score cp 25 nodes 8141 nps 581500 pv e2e4 e7e5
    info depth 10 seldepth 13 multipv 2 score cp 19 nodes 8141 nps 581500 pv d2d4 d7d5
    bestmove e2e4 ponder e7e5
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

logger = logging.getLogger(__name__)

UCI = "uci"
ISREADY = "isready"
UCINEWGAME = "ucinewgame"
STOP = "stop"
QUIT = "quit"

FULL_STRENGTH_SKILL = 20

SCORE_KINDS = ("cp", "mate")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class AnalysisLine:
    """One candidate line reported by an info message."""

    depth: int
    multipv: int  # 1-based rank of the line
    score_kind: str  # "cp" or "mate"
    score_value: int
    pv: tuple[str, ...]  # Moves in UCI notation

    @property
    def readable(self) -> float | str:
        """Score in pawns, or "mate N" for mate scores."""
        if self.score_kind == "cp":
            return self.score_value / 100
        return f"mate {self.score_value}"


@dataclass
class AnalysisResult:
    """Terminal result of one analysis request."""

    best_move: str
    ponder_move: str | None = None
    lines: list[AnalysisLine] = field(default_factory=list)  # Sorted by multipv
    reported_depth: int = 0


@dataclass(frozen=True)
class ReadyOk:
    """Answer to an isready probe."""


@dataclass(frozen=True)
class EngineId:
    """Engine name announced during the uci handshake."""

    name: str


@dataclass(frozen=True)
class InfoLine:
    """A parsed analysis line."""

    line: AnalysisLine


@dataclass(frozen=True)
class BestMove:
    """Terminal search result."""

    move: str
    ponder: str | None = None


Event = Union[ReadyOk, EngineId, InfoLine, BestMove]


# =============================================================================
# Encoding
# =============================================================================


def set_option(name: str, value: object) -> str:
    """Encode a setoption command; booleans use the UCI true/false spelling."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"setoption name {name} value {value}"


def encode_handshake(threads: int, hash_mb: int, multipv: int) -> list[str]:
    """Commands sent once to a freshly spawned engine, ending in a probe.

    No "Use NNUE" option is sent: Stockfish 16.1 and later always evaluate
    with NNUE and reject the option.
    """
    return [
        UCI,
        set_option("Threads", threads),
        set_option("Hash", hash_mb),
        set_option("UCI_LimitStrength", False),
        set_option("Skill Level", FULL_STRENGTH_SKILL),
        set_option("MultiPV", multipv),
        set_option("Ponder", False),
        UCINEWGAME,
        ISREADY,
    ]


def encode_skill(skill_level: int) -> list[str]:
    """Skill tuning sent before every search."""
    return [
        set_option("Skill Level", skill_level),
        set_option("UCI_LimitStrength", False),
    ]


def encode_reset() -> list[str]:
    """Clear position state between requests and probe for readiness."""
    return [UCINEWGAME, ISREADY]


def encode_analysis_request(
    fen: str,
    depth: int,
    multipv: int,
    time_limit_ms: int | None = None,
) -> list[str]:
    """Encode a search request.

    Args:
        fen: Position in FEN notation.
        depth: Depth bound for the search.
        multipv: Number of candidate lines to report.
        time_limit_ms: Optional move time bound, sent alongside the depth bound.

    Returns:
        Ordered list of commands to send.
    """
    go = f"go depth {depth}"
    if time_limit_ms:
        go += f" movetime {time_limit_ms}"
    return [
        f"position fen {fen}",
        set_option("MultiPV", multipv),
        go,
    ]


# =============================================================================
# Decoding
# =============================================================================


def parse_info_line(text: str) -> AnalysisLine | None:
    """Parse an info message carrying depth, multipv, score and pv.

    Returns None for any other info message (currmove updates, strings,
    lines without a principal variation).
    """
    tokens = text.split()
    if not tokens or tokens[0] != "info":
        return None

    depth: int | None = None
    multipv: int | None = None
    score_kind: str | None = None
    score_value: int | None = None
    pv: list[str] = []

    i = 1
    while i < len(tokens):
        token = tokens[i]
        if token == "string":
            return None
        if token == "pv":
            pv = tokens[i + 1 :]
            break
        if token in ("depth", "multipv") and i + 1 < len(tokens):
            value = _parse_int(tokens[i + 1])
            if token == "depth":
                depth = value
            else:
                multipv = value
            i += 2
            continue
        if token == "score" and i + 2 < len(tokens) and tokens[i + 1] in SCORE_KINDS:
            score_kind = tokens[i + 1]
            score_value = _parse_int(tokens[i + 2])
            i += 3
            continue
        i += 1

    if depth is None or multipv is None or score_kind is None or score_value is None or not pv:
        return None

    return AnalysisLine(
        depth=depth,
        multipv=multipv,
        score_kind=score_kind,
        score_value=score_value,
        pv=tuple(pv),
    )


def parse_bestmove(text: str) -> BestMove | None:
    """Parse `bestmove <move> [ponder <move>]`."""
    tokens = text.split()
    if len(tokens) < 2 or tokens[0] != "bestmove":
        return None
    ponder = tokens[3] if len(tokens) >= 4 and tokens[2] == "ponder" else None
    return BestMove(move=tokens[1], ponder=ponder)


def decode_line(text: str) -> Event | None:
    """Decode one complete line of engine output."""
    if text == "readyok":
        return ReadyOk()
    if text.startswith("bestmove"):
        return parse_bestmove(text)
    if text.startswith("info"):
        line = parse_info_line(text)
        return InfoLine(line) if line is not None else None
    if text.startswith("id name "):
        return EngineId(text[len("id name ") :].strip())
    return None


class UciDecoder:
    """Incremental decoder for a stream of engine output chunks.

    Bytes after the last newline stay buffered until a later chunk completes
    the line, so a line split across reads decodes exactly once.
    """

    def __init__(self) -> None:
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete trailing line."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[Event]:
        """Consume a chunk and return the events of every completed line."""
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer += chunk
        *complete, self._buffer = self._buffer.split(b"\n")

        events: list[Event] = []
        for raw in complete:
            text = raw.decode("utf-8", errors="replace").strip()
            if not text:
                continue
            logger.debug(f"Recv: {text}")
            event = decode_line(text)
            if event is not None:
                events.append(event)
        return events

    def reset(self) -> None:
        """Drop any partial line."""
        self._buffer = b""


class AnalysisCollector:
    """Per-request table of analysis lines, keyed by multipv.

    A later line for the same multipv replaces the earlier one. Lines ranked
    beyond the requested multipv are ignored.
    """

    def __init__(self, requested_depth: int, multipv: int) -> None:
        self._requested_depth = requested_depth
        self._multipv = multipv
        self._lines: dict[int, AnalysisLine] = {}

    def add(self, line: AnalysisLine) -> None:
        if 1 <= line.multipv <= self._multipv:
            self._lines[line.multipv] = line

    def finish(self, best: BestMove) -> AnalysisResult:
        """Build the result once the terminal bestmove has arrived."""
        lines = [self._lines[index] for index in sorted(self._lines)]
        return AnalysisResult(
            best_move=best.move,
            ponder_move=best.ponder,
            lines=lines,
            reported_depth=lines[0].depth if lines else self._requested_depth,
        )


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None
