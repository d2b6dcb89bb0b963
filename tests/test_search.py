import pytest

from discovery.core import search
from discovery.models import ProviderRecord, SearchFilters


class DummySettings:
    default_result_cap = 50
    coordinate_precision = None


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    dummy = DummySettings()
    monkeypatch.setattr(search, "get_settings", lambda: dummy)
    return dummy


def install_rows(monkeypatch, rows):
    calls = []

    def fake_fetch(**kwargs):
        calls.append(kwargs)
        return [dict(row) for row in rows]

    monkeypatch.setattr(search, "fetch_provider_candidates", fake_fetch)
    return calls


def row(provider_id, lat, lng, **extra):
    data = {
        "id": provider_id,
        "kind": "escort",
        "display_name": f"Provider {provider_id}",
        "latitude": lat,
        "longitude": lng,
        "rate_1h": 200,
        "services": None,
        "languages": None,
    }
    data.update(extra)
    return data


GENEVA_FIXTURE = [
    row("p1", 46.2, 6.15, services="massage, dinner", languages=["Français"]),
    row("p2", 46.21, 6.14, services=["dinner"]),
    row("p3", 46.52, 6.63, services="massage"),
]


def test_viewport_and_service_filter_end_to_end(monkeypatch):
    install_rows(monkeypatch, GENEVA_FIXTURE)
    filters = search.build_filters(bbox="6.0,46.1,6.3,46.3", services=["massage"])

    results = search.search_providers(filters)

    assert [dto.id for dto in results] == ["p1"]
    assert results[0].services == ["massage", "dinner"]


def test_invalid_coordinates_never_returned(monkeypatch):
    install_rows(
        monkeypatch,
        [
            row("ok", 46.2, 6.1),
            row("nolat", None, 6.1),
            row("nolng", 46.2, None),
            row("range", 95.0, 6.1),
            row("text", "north", 6.1),
        ],
    )

    results = search.search_providers(SearchFilters())

    assert [dto.id for dto in results] == ["ok"]


def test_no_viewport_caps_results(monkeypatch):
    calls = install_rows(monkeypatch, [row(f"p{i:03d}", 46.2, 6.1) for i in range(80)])

    results = search.search_providers(SearchFilters())

    assert len(results) == 50
    assert calls[0]["limit"] == 50
    assert calls[0]["bbox"] is None


def test_viewport_is_not_capped(monkeypatch):
    calls = install_rows(monkeypatch, [row(f"p{i:03d}", 46.2, 6.15) for i in range(80)])

    results = search.search_providers(SearchFilters(bbox="6.0,46.1,6.3,46.3"))

    assert len(results) == 80
    assert calls[0]["limit"] is None
    assert calls[0]["bbox"].min_lat == 46.1


def test_explicit_cap_overrides_default(monkeypatch):
    install_rows(monkeypatch, [row(f"p{i:03d}", 46.2, 6.1) for i in range(10)])

    assert len(search.search_providers(SearchFilters(), cap=3)) == 3


def test_malformed_bbox_applies_cap(monkeypatch):
    calls = install_rows(monkeypatch, [row("p1", 46.2, 6.1)])

    results = search.search_providers(SearchFilters(bbox="6.0,46.1,abc"))

    assert [dto.id for dto in results] == ["p1"]
    assert calls[0]["bbox"] is None
    assert calls[0]["limit"] == 50


def test_viewport_edges_are_exclusive(monkeypatch):
    install_rows(monkeypatch, [row("edge", 46.1, 6.15), row("inside", 46.15, 6.15)])

    results = search.search_providers(SearchFilters(bbox="6.0,46.1,6.3,46.3"))

    assert [dto.id for dto in results] == ["inside"]


def test_results_ordered_by_distance_to_viewport_center(monkeypatch):
    install_rows(
        monkeypatch,
        [
            row("far", 46.29, 6.29),
            row("near", 46.2, 6.15),
            row("middle", 46.25, 6.2),
        ],
    )

    results = search.search_providers(SearchFilters(bbox="6.0,46.1,6.3,46.3"))

    assert [dto.id for dto in results] == ["near", "middle", "far"]


def test_price_and_type_filters(monkeypatch):
    install_rows(
        monkeypatch,
        [
            row("cheap", 46.2, 6.1, rate_1h=150),
            row("pricey", 46.2, 6.1, rate_1h=400),
            row("unpriced", 46.2, 6.1, rate_1h=None),
            row("club", 46.2, 6.1, kind="club", rate_1h=100),
        ],
    )

    results = search.search_providers(search.build_filters(price_max="300", search_type="escort"))

    assert [dto.id for dto in results] == ["cheap"]


def test_language_filter_is_case_insensitive(monkeypatch):
    install_rows(monkeypatch, GENEVA_FIXTURE)

    results = search.search_providers(search.build_filters(languages=["français"]))

    assert [dto.id for dto in results] == ["p1"]


def test_fetch_failure_returns_empty_list(monkeypatch, caplog):
    def boom(**kwargs):
        raise RuntimeError("database down")

    monkeypatch.setattr(search, "fetch_provider_candidates", boom)

    with caplog.at_level("ERROR"):
        assert search.search_providers(SearchFilters()) == []

    assert "Proximity search failed" in caplog.text


def test_search_all_splits_by_type(monkeypatch):
    install_rows(
        monkeypatch,
        [
            row("e1", 46.2, 6.1),
            row("c1", 46.2, 6.1, kind="club", display_name="Club Lac"),
        ],
    )

    payload = search.search_all(SearchFilters())

    assert [item["id"] for item in payload["escorts"]] == ["e1"]
    assert [item["id"] for item in payload["clubs"]] == ["c1"]
    assert payload["clubs"][0]["type"] == "CLUB"


def test_coordinate_precision_rounds_displayed_point(monkeypatch, settings):
    settings.coordinate_precision = 2
    install_rows(monkeypatch, [row("p1", 46.20441, 6.14321)])

    result = search.search_providers(SearchFilters())[0]

    assert (result.lat, result.lng) == (46.2, 6.14)


def test_dto_fallback_name_and_price_range():
    record = ProviderRecord(id="abc123456789", lat=46.2, lng=6.1, hourly_rate=150.0)

    dto = search.to_dto(record)
    payload = dto.to_payload()

    assert dto.name == "user_456789"
    assert dto.handle == "@user_456789"
    assert payload["priceRange"] == {"min": 150.0, "max": 300}
    assert payload["isActive"] is True
    assert "avatar" not in payload
    assert "city" not in payload


def test_dto_handle_from_display_name():
    record = ProviderRecord(id="p1", display_name="Anna Maria", lat=46.2, lng=6.1, city="Genève")

    payload = search.to_dto(record).to_payload()

    assert payload["handle"] == "@anna_maria"
    assert payload["city"] == "Genève"
    assert "priceRange" not in payload


def test_build_filters_normalizes_values():
    filters = search.build_filters(
        bbox="",
        price_max="abc",
        services=[" massage ", ""],
        languages=["Anglais"],
        search_type="CLUB",
    )

    assert filters.bbox is None
    assert filters.price_max is None
    assert filters.services == ("massage",)
    assert filters.languages == ("Anglais",)
    assert filters.type == "club"


def test_build_filters_rejects_unknown_type():
    with pytest.raises(ValueError):
        search.build_filters(search_type="spa")


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
def test_build_filters_ignores_non_finite_price(raw):
    assert search.build_filters(price_max=raw).price_max is None
