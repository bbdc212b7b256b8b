from datetime import timedelta

from civichub.services.duplicate_resolver import (
    DuplicateCandidate,
    DuplicateResolver,
    text_similarity,
    tokenize,
)
from civichub.utils.geo import METERS_PER_DEGREE

from conftest import NOW, make_issue


BASE_LAT = 18.5074
BASE_LNG = 73.8077
SUMMARY = "Water pipe burst near the bus stop"


def candidate(description=SUMMARY, latitude=BASE_LAT, longitude=BASE_LNG, department="water", geo=True):
    geo_data = {"latitude": latitude, "longitude": longitude} if geo else None
    return DuplicateCandidate(description=description, geo_data=geo_data, department=department)


def test_identical_report_at_same_spot_is_duplicate():
    resolver = DuplicateResolver()
    assert resolver.find_duplicate(candidate(), [make_issue("i1")]) == "i1"


def test_distance_exactly_five_meters_matches():
    resolver = DuplicateResolver()
    issue = make_issue("i1", latitude=BASE_LAT + 5.0 / METERS_PER_DEGREE)
    assert resolver.find_duplicate(candidate(), [issue]) == "i1"


def test_distance_just_over_five_meters_does_not_match():
    resolver = DuplicateResolver()
    issue = make_issue("i1", latitude=BASE_LAT + 5.01 / METERS_PER_DEGREE)
    assert resolver.find_duplicate(candidate(), [issue]) is None


def test_similarity_of_exactly_thirty_percent_is_not_enough():
    summary = "pipe burst flooding the main road near city hall gate"
    description = "pipe burst flooding reported by residents since early this morning"
    assert text_similarity(description, summary) == 0.3

    resolver = DuplicateResolver()
    assert resolver.find_duplicate(candidate(description), [make_issue("i1", summary=summary)]) is None


def test_similarity_of_thirty_one_percent_matches():
    summary = " ".join(f"w{i}" for i in range(100))
    description = " ".join(f"w{i}" for i in range(31))
    assert text_similarity(description, summary) == 0.31

    resolver = DuplicateResolver()
    assert resolver.find_duplicate(candidate(description), [make_issue("i1", summary=summary)]) == "i1"


def test_other_department_is_never_matched():
    resolver = DuplicateResolver()
    issue = make_issue("i1", department="pwd")
    assert resolver.find_duplicate(candidate(department="water"), [issue]) is None


def test_resolved_issue_is_never_matched():
    resolver = DuplicateResolver()
    issue = make_issue("i1", status="resolved")
    assert resolver.find_duplicate(candidate(), [issue]) is None


def test_escalated_issue_is_still_open():
    resolver = DuplicateResolver()
    issue = make_issue("i1", status="escalated")
    assert resolver.find_duplicate(candidate(), [issue]) == "i1"


def test_no_geo_means_no_dedup():
    resolver = DuplicateResolver()
    assert resolver.find_duplicate(candidate(geo=False), [make_issue("i1")]) is None


def test_partial_candidate_geo_is_treated_as_absent():
    resolver = DuplicateResolver()
    partial = DuplicateCandidate(description=SUMMARY, geo_data={"latitude": BASE_LAT}, department="water")
    assert resolver.find_duplicate(partial, [make_issue("i1")]) is None


def test_issue_without_summary_or_with_bad_geo_is_skipped():
    resolver = DuplicateResolver()
    no_summary = make_issue("i1")
    no_summary["summary"] = None
    bad_geo = make_issue("i2")
    bad_geo["geo_data"] = {"latitude": "north", "longitude": BASE_LNG}
    good = make_issue("i3")

    assert resolver.find_duplicate(candidate(), [no_summary, bad_geo, good]) == "i3"


def test_earliest_reported_issue_wins():
    resolver = DuplicateResolver()
    newer = make_issue("newer", reported_at=NOW)
    older = make_issue("older", reported_at=NOW - timedelta(days=2))

    assert resolver.find_duplicate(candidate(), [newer, older]) == "older"


def test_same_reported_at_falls_back_to_id_order():
    resolver = DuplicateResolver()
    issues = [make_issue("b"), make_issue("a")]
    assert resolver.find_duplicate(candidate(), issues) == "a"


def test_text_similarity_edge_cases():
    assert text_similarity("", "") == 0.0
    assert text_similarity(None, "water leak") == 0.0
    assert text_similarity("Water LEAK", "water leak") == 1.0


def test_thresholds_can_be_overridden():
    resolver = DuplicateResolver(distance_threshold_meters=50.0)
    issue = make_issue("i1", latitude=BASE_LAT + 20.0 / METERS_PER_DEGREE)
    assert resolver.find_duplicate(candidate(), [issue]) == "i1"


def test_issue_with_non_string_summary_is_skipped():
    resolver = DuplicateResolver()
    numeric = make_issue("i1", summary=42)
    good = make_issue("i2")

    assert resolver.find_duplicate(candidate(), [numeric, good]) == "i2"
    assert resolver.find_duplicate(candidate(), [numeric]) is None


def test_tokenize_ignores_non_strings():
    assert tokenize(42) == []
    assert tokenize(None) == []
    assert text_similarity("water leak", 42) == 0.0
