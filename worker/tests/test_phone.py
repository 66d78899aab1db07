from localpack.core.phone import collapse_whitespace, normalize_phone


def test_normalize_international_number():
    assert normalize_phone("+81 70-1274-0809") == "+817012740809"


def test_normalize_national_number_needs_region():
    assert normalize_phone("(650) 253-0000", "US") == "+16502530000"
    assert normalize_phone("(650) 253-0000") == ""


def test_normalize_finds_number_inside_text():
    assert normalize_phone("Tel: +81 70-1274-0809 (mobile)") == "+817012740809"


def test_invalid_candidates_are_discarded():
    assert normalize_phone("12-3", "US") == ""


def test_no_candidate_returns_empty():
    assert normalize_phone("") == ""
    assert normalize_phone("Open 24 hours") == ""


def test_collapse_whitespace():
    assert collapse_whitespace("  Iron \n  Gym\tTokyo ") == "Iron Gym Tokyo"
    assert collapse_whitespace("") == ""
