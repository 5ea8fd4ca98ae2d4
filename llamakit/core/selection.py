"""Parsing of 1-based model indices typed by the user."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence, Union

INDEX_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class ValidIndex:
    index: int  # zero-based

    def message(self) -> str:
        return ""


@dataclass(frozen=True)
class ParseError:
    text: str

    def message(self) -> str:
        return f"'{self.text}' is not a number."


@dataclass(frozen=True)
class RangeError:
    value: int
    count: int

    def message(self) -> str:
        return f"{self.value} is out of range; enter a number from 1 to {self.count}."


IndexChoice = Union[ValidIndex, ParseError, RangeError]


def parse_model_index(text: str, count: int) -> IndexChoice:
    """Turn user input into a zero-based index into a list of ``count`` models."""
    stripped = text.strip()
    if not INDEX_RE.fullmatch(stripped):
        return ParseError(stripped)
    value = int(stripped)
    if not 1 <= value <= count:
        return RangeError(value, count)
    return ValidIndex(value - 1)


def format_model_list(models: Sequence[str]) -> str:
    return "\n".join(f"{i}. {name}" for i, name in enumerate(models, start=1))
