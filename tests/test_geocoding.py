import pytest
import requests

from discovery.geo import geocoding
from discovery.vendors import nominatim


class DummySettings:
    nominatim_url = "https://geo.example"
    nominatim_user_agent = "tests/1.0"
    geocode_country_codes = ("ch", "fr", "it", "de")
    geocode_timeout = 5.0


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    monkeypatch.setattr(geocoding, "get_settings", lambda: DummySettings())


@pytest.fixture
def no_network(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("external geocoder must not be called")

    monkeypatch.setattr(geocoding.nominatim, "search", fail)
    monkeypatch.setattr(geocoding.nominatim, "reverse", fail)


@pytest.mark.parametrize("name", [None, "", " ", "G", "  a  "])
def test_short_names_are_rejected(name, no_network):
    assert geocoding.resolve_city(name) is None


@pytest.mark.parametrize("name", ["genève", "GENÈVE", "Genève centre", "Genè"])
def test_gazetteer_matches_either_direction(name, no_network):
    result = geocoding.resolve_city(name)

    assert result.source == "predefined"
    assert result.city == "Genève"
    assert (result.lat, result.lng) == (46.2044, 6.1432)


def test_external_lookup_on_gazetteer_miss(monkeypatch):
    captured = {}

    def fake_search(query, **kwargs):
        captured["query"] = query
        captured.update(kwargs)
        return [
            {
                "lat": "46.4628",
                "lon": "6.8419",
                "display_name": "Vevey, District de la Riviera-Pays-d'Enhaut, Vaud, Suisse",
                "address": {"town": "Vevey", "country": "Suisse"},
            }
        ]

    monkeypatch.setattr(geocoding.nominatim, "search", fake_search)

    result = geocoding.resolve_city("  Vevey ")

    assert captured["query"] == "Vevey"
    assert captured["country_codes"] == ("ch", "fr", "it", "de")
    assert captured["limit"] == 1
    assert captured["timeout"] == 5.0
    assert result.source == "external"
    assert result.city == "Vevey"
    assert result.country == "Suisse"
    assert result.lat == pytest.approx(46.4628)


def test_external_city_falls_back_to_query(monkeypatch):
    monkeypatch.setattr(
        geocoding.nominatim,
        "search",
        lambda query, **kwargs: [{"lat": "45.9", "lon": "6.1", "display_name": "Annecy", "address": {}}],
    )

    assert geocoding.resolve_city("Annecy").city == "Annecy"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        [{"lat": "95", "lon": "6.1"}],
        [{"lat": "abc", "lon": "6.1"}],
        [{"display_name": "no coordinates"}],
    ],
)
def test_external_misses_return_none(monkeypatch, payload):
    monkeypatch.setattr(geocoding.nominatim, "search", lambda query, **kwargs: payload)

    assert geocoding.resolve_city("Nowhere") is None


@pytest.mark.parametrize(
    "error",
    [requests.Timeout("slow"), requests.ConnectionError("down"), nominatim.NominatimError("bad")],
)
def test_external_failures_return_none(monkeypatch, error):
    def boom(query, **kwargs):
        raise error

    monkeypatch.setattr(geocoding.nominatim, "search", boom)

    assert geocoding.resolve_city("Nowhere") is None


def test_reverse_resolve_uses_external_provider(monkeypatch):
    monkeypatch.setattr(
        geocoding.nominatim,
        "reverse",
        lambda lat, lng, **kwargs: {
            "lat": str(lat),
            "lon": str(lng),
            "display_name": "Place du Molard, Genève",
            "address": {"village": "Genève", "country": "Suisse"},
        },
    )

    result = geocoding.reverse_resolve(46.2044, 6.1432)

    assert result.city == "Genève"
    assert result.display_name == "Place du Molard, Genève"
    assert result.source == "external"


def test_reverse_resolve_rejects_invalid_coordinates(no_network):
    assert geocoding.reverse_resolve(120, 6.1) is None


def test_reverse_resolve_handles_not_found_and_timeouts(monkeypatch):
    monkeypatch.setattr(geocoding.nominatim, "reverse", lambda lat, lng, **kwargs: None)
    assert geocoding.reverse_resolve(0.0, -30.0) is None

    def slow(lat, lng, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(geocoding.nominatim, "reverse", slow)
    assert geocoding.reverse_resolve(0.0, -30.0) is None


def test_list_gazetteer():
    cities = geocoding.list_gazetteer()

    assert len(cities) == 10
    assert cities[0] == {"name": "Genève", "lat": 46.2044, "lng": 6.1432}
