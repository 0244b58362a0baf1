"""
smartfill/matching.py — Filename match keys for correlating multi-source files.

  prefix          PART001_001.txt -> "PART001"
  exact_basename  PART001_001.txt -> "PART001_001"

The extension is everything after the last dot, except that a leading dot
does not start an extension (".hidden" stays ".hidden").
"""
from __future__ import annotations

import os
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import AppError, BAD_CONFIG
from .models import MatchingStrategy


STRATEGIES = ("prefix", "exact_basename")


def strip_extension(name: str) -> str:
    dot = name.rfind(".")
    return name[:dot] if dot > 0 else name


def extract_match_key(file_name: str, strategy: MatchingStrategy = "prefix") -> str:
    if strategy not in STRATEGIES:
        raise AppError(BAD_CONFIG, f"Bad matching strategy: {strategy!r}")
    stem = strip_extension(os.path.basename(file_name))
    if strategy == "exact_basename":
        return stem
    underscore = stem.find("_")
    return stem[:underscore] if underscore > 0 else stem


def files_match(a: str, b: str, strategy: MatchingStrategy = "prefix") -> bool:
    return extract_match_key(a, strategy) == extract_match_key(b, strategy)


def group_by_match_key(paths: Iterable[str], strategy: MatchingStrategy = "prefix") -> Dict[str, List[str]]:
    """Group paths by key, keeping first-seen key order and input order within a group."""
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for p in paths:
        groups.setdefault(extract_match_key(p, strategy), []).append(p)
    return groups


def find_common_match_key(
    slot_files: Mapping[int, str],
    strategy: MatchingStrategy = "prefix",
) -> Optional[str]:
    """The key shared by every file, or None (also None for an empty map)."""
    if not slot_files:
        return None
    keys = {extract_match_key(p, strategy) for p in slot_files.values()}
    if len(keys) == 1:
        return keys.pop()
    return None
