from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Iterator, List, Optional


class BreakdownKind(str, Enum):
    STEP = "STEP"
    CHECK = "CHECK"
    WARNING = "WARNING"
    META = "META"


class CheckStatus(str, Enum):
    OK = "OK"
    BLOCK = "BLOCK"


_CODE_RE = re.compile(r"^[A-Z][A-Z0-9_]{2,63}$")  # e.g. BASE, VARIATION, SEASONAL_PCT


def _validate_code(code: str) -> str:
    code = str(code).strip()
    if not _CODE_RE.match(code):
        raise ValueError(f"invalid breakdown code '{code}'. Expected UPPER_SNAKE (3-64 chars)")
    return code


def _validate_message(message: str) -> str:
    msg = str(message).strip()
    if not msg:
        raise ValueError("breakdown message must be non-empty")
    # UI renders these one per line
    if "\n" in msg or "\r" in msg or "\t" in msg:
        raise ValueError("breakdown message may not contain newlines or tabs")
    if len(msg) > 240:
        raise ValueError("breakdown message too long (max 240 chars)")
    return msg


@dataclass(frozen=True)
class BreakdownEntry:
    seq: int
    kind: BreakdownKind
    code: str
    message: str
    status: Optional[CheckStatus] = None


@dataclass
class Breakdown:
    """
    Explain trail written while a price is resolved.
    Iterating yields the rendered strings.
    """

    _entries: List[BreakdownEntry] = field(default_factory=list)

    @property
    def entries(self) -> List[BreakdownEntry]:
        return list(self._entries)

    def as_strings(self) -> List[str]:
        return BreakdownBuilder().build(self)

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_strings())

    def __len__(self) -> int:
        return len(self._entries)

    def add_step(self, code: str, message: str) -> None:
        self._append(BreakdownKind.STEP, code, message)

    def add_check(self, code: str, message: str, status: str | CheckStatus = CheckStatus.OK) -> None:
        self._append(BreakdownKind.CHECK, code, message, CheckStatus(status))

    def add_warning(self, code: str, message: str) -> None:
        self._append(BreakdownKind.WARNING, code, message)

    def add_meta(self, code: str, message: str) -> None:
        self._append(BreakdownKind.META, code, message)

    def _append(
        self,
        kind: BreakdownKind,
        code: str,
        message: str,
        status: Optional[CheckStatus] = None,
    ) -> None:
        self._entries.append(
            BreakdownEntry(
                seq=len(self._entries) + 1,
                kind=kind,
                code=_validate_code(code),
                message=_validate_message(message),
                status=status,
            )
        )


class BreakdownBuilder:
    """Renders a Breakdown to list[str] in insertion order."""

    def build(self, breakdown: Breakdown) -> List[str]:
        if not isinstance(breakdown, Breakdown):
            raise TypeError("BreakdownBuilder.build expects a Breakdown instance")
        return [self._render(e) for e in sorted(breakdown.entries, key=lambda e: e.seq)]

    def _render(self, e: BreakdownEntry) -> str:
        if e.kind == BreakdownKind.CHECK:
            prefix = "OK" if e.status == CheckStatus.OK else "BLOCK"
            return f"{prefix}: {e.message}"
        if e.kind == BreakdownKind.WARNING:
            return f"WARNING: {e.message}"
        if e.kind == BreakdownKind.META:
            return f"META: {e.message}"
        return e.message
