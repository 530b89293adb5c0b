"""Substring matching of log lines against configured message definitions."""

from __future__ import annotations

from typing import Iterable

from .definitions import MatchResult, MessageDefinition


def match_line(
    line: str,
    definitions: Iterable[MessageDefinition],
) -> list[MatchResult]:
    """Return one result per definition whose pattern occurs in `line`.

    Matching is case-sensitive and results keep definition order. Definitions
    sharing a pattern are evaluated independently, so one line may yield both a
    simple and a timed result for the same pattern.
    """
    return [
        MatchResult.from_definition(definition)
        for definition in definitions
        if definition.pattern and definition.pattern in line
    ]
