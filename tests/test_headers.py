from mdflow.headers import HeaderMapper, detect_header_row, map_headers, score_header_row, unmapped_columns
from mdflow.schema import normalize_header


def _fields(mappings):
    return [(m.source_index, m.canonical_field) for m in mappings]


def test_ui_spec_headers_use_context():
    mappings = map_headers(["No", "Item Name", "Type"])
    assert _fields(mappings) == [(0, "no"), (1, "item_name"), (2, "item_type")]
    assert mappings[2].method == "context"
    assert all(m.confidence == 100 for m in mappings)


def test_exact_item_type_header_keeps_generic_type_as_type():
    mappings = map_headers(["Item Name", "Item Type", "Type"])
    assert _fields(mappings) == [(0, "item_name"), (1, "item_type"), (2, "type")]
    assert [m.method for m in mappings] == ["exact", "exact", "exact"]


def test_plain_type_header_stays_type_without_ui_context():
    assert _fields(map_headers(["Feature", "Type"])) == [(0, "feature"), (1, "type")]


def test_exact_english_aliases():
    mappings = map_headers(["ID", "Feature", "Expected Result"])
    assert _fields(mappings) == [(0, "id"), (1, "feature"), (2, "expected")]
    assert [m.source_header for m in mappings] == ["ID", "Feature", "Expected Result"]


def test_japanese_and_full_width_aliases():
    mappings = map_headers(["テストID", "機能", "期待結果", "備考", "結果"])
    assert _fields(mappings) == [(0, "id"), (1, "feature"), (2, "expected"), (3, "notes"), (4, "status")]
    assert _fields(map_headers(["ＩＤ"])) == [(0, "id")]


def test_vietnamese_aliases():
    assert _fields(map_headers(["Tính năng", "Kết quả mong đợi"])) == [(0, "feature"), (1, "expected")]


def test_substring_match_scores_between_exact_and_fuzzy():
    (mapping,) = map_headers(["Expected Output Value"])
    assert mapping.canonical_field == "expected"
    assert mapping.method == "substring"
    assert 70 <= mapping.confidence <= 90


def test_fuzzy_match_for_typo():
    (mapping,) = map_headers(["Expcted"])
    assert mapping.canonical_field == "expected"
    assert mapping.method == "fuzzy"
    assert 60 <= mapping.confidence < 70


def test_min_confidence_leaves_weak_matches_unmapped():
    assert map_headers(["Expcted"], min_confidence=90) == []


def test_field_claimed_once_lower_index_wins_tie():
    mappings = map_headers(["Steps", "Description"])
    assert _fields(mappings) == [(0, "instructions")]
    assert unmapped_columns(2, mappings) == [1]


def test_unknown_headers_are_unmapped():
    assert map_headers(["Foo Bar", "Zzz", ""]) == []


def test_mapping_is_deterministic():
    mapper = HeaderMapper()
    row = ["Test Case", "Steps", "Expected", "Notes", "Owner", "Prio"]
    assert mapper.map_headers(row) == mapper.map_headers(row)


def test_header_row_scores():
    assert score_header_row(["ID", "Feature", "Expected"]) == 100
    assert score_header_row(["Feature", "Expected"]) == 80
    assert score_header_row(["Foo", "Bar"]) == 10
    assert score_header_row(["# Feature", "Expected"]) == 0
    assert score_header_row(["Feature", ""]) == 0


def test_detect_header_row_prefers_named_fields_within_first_rows():
    matrix = [["Release notes"], ["Owner: QA", "Draft 2"], ["ID", "Feature", "Expected"], ["1", "Login", "OK"]]
    assert detect_header_row(matrix) == 2
    assert detect_header_row([["#", "A"], ["1", "2"]]) == 0
    assert detect_header_row([["x"]] * 5 + [["ID", "Feature"]]) == 0


def test_normalize_header_collapses_merged_cell_repeats():
    assert normalize_header("Item Name Item Name") == "item name"
    assert normalize_header("Expected  Expected Result") == "expected result"
    assert normalize_header("Step-Step-Step") == "step"
    assert _fields(map_headers(["Item Name Item Name"])) == [(0, "item_name")]
