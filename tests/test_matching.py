import pytest

from smartfill.errors import AppError, BAD_CONFIG
from smartfill.matching import (
    extract_match_key,
    files_match,
    find_common_match_key,
    group_by_match_key,
    strip_extension,
)


@pytest.mark.parametrize("name,prefix,exact", [
    ("PART001_001.txt", "PART001", "PART001_001"),
    ("PART001_A_B.csv", "PART001", "PART001_A_B"),
    ("PART002.txt", "PART002", "PART002"),
    ("_lead.txt", "_lead", "_lead"),
    ("noext", "noext", "noext"),
    ("a.b.c.txt", "a.b.c", "a.b.c"),
    (".hidden", ".hidden", ".hidden"),
])
def test_extract_match_key(name, prefix, exact):
    assert extract_match_key(name, "prefix") == prefix
    assert extract_match_key(name, "exact_basename") == exact


def test_directory_part_is_ignored():
    assert extract_match_key("/data/in/PART9_x.txt") == "PART9"


def test_unknown_strategy_rejected():
    with pytest.raises(AppError) as ei:
        extract_match_key("a.txt", "suffix")
    assert ei.value.code == BAD_CONFIG


def test_strip_extension():
    assert strip_extension("report.final.txt") == "report.final"
    assert strip_extension(".env") == ".env"


def test_files_match():
    assert files_match("P1_a.txt", "P1_b.csv")
    assert not files_match("P1_a.txt", "P1_b.csv", "exact_basename")
    assert not files_match("P1_a.txt", "P2_a.txt")


def test_group_by_match_key_keeps_order():
    groups = group_by_match_key(["B_1.txt", "A_1.txt", "B_2.txt"])
    assert list(groups.keys()) == ["B", "A"]
    assert groups["B"] == ["B_1.txt", "B_2.txt"]


def test_find_common_match_key():
    assert find_common_match_key({1: "P7_x.txt", 2: "P7_y.txt"}) == "P7"
    assert find_common_match_key({1: "P7_x.txt", 2: "P8_y.txt"}) is None
    assert find_common_match_key({}) is None
    assert find_common_match_key({1: "solo_a.txt"}) == "solo"
