import asyncio

import pytest

from cache import TTLCache
from fakes import FakeAdStore, FakeGeocoder, geocoded
from services.geocoding import GeocodingError
from services.zone_classifier import (
    GeoZoneClassifier,
    InvalidZoneError,
    density_metrics,
    determine_zone,
    place_signals,
)

# > 50 ads/km² inside a 5 km circle
DENSE = {"total": 4000}


def make_classifier(geo=None, counts=None, error=None):
    geocoder = FakeGeocoder(geo, error)
    ads = FakeAdStore(counts=counts or {})
    return GeoZoneClassifier(geocoder, ads, TTLCache(1800, 1000)), geocoder, ads


def test_dense_city_address_is_city_center():
    classifier, _, _ = make_classifier(geocoded(city="Минск"), DENSE)

    result = asyncio.run(classifier.classify(53.9, 27.5))

    assert result.zone == "city_center"
    assert result.source == "classifier"
    scores = result.scores
    assert scores["city_center"] > scores["suburb"]
    assert scores["city_center"] > scores["village"]


def test_village_tags_with_sparse_farmer_ads():
    classifier, _, _ = make_classifier(geocoded(village="Ждановичи"), {"total": 10, "farmer": 4})

    result = asyncio.run(classifier.classify(53.95, 27.4))

    assert result.zone == "village"
    assert result.scores["village"] == 40 + 30 + 15 + 25


def test_repeat_call_served_from_cache():
    classifier, geocoder, ads = make_classifier(geocoded(suburb="Уручье", city="Минск"), {"total": 1000})

    first = asyncio.run(classifier.classify(53.94, 27.68))
    second = asyncio.run(classifier.classify(53.94, 27.68))

    assert first == second
    assert geocoder.calls == 1
    assert ads.count_calls == 4


def test_upstream_failure_falls_back_to_suburb_uncached():
    classifier, geocoder, _ = make_classifier(error=GeocodingError("timeout"))

    result = asyncio.run(classifier.classify(53.9, 27.5))
    asyncio.run(classifier.classify(53.9, 27.5))

    assert (result.zone, result.confidence, result.source) == ("suburb", 0.5, "fallback")
    assert geocoder.calls == 2


def test_all_zero_scores_give_one_third_confidence():
    place = place_signals(None)
    # density between 5 and 10 ads/km² scores nothing
    metrics = density_metrics(500, 0, 0, 0)

    result = determine_zone(place, metrics)

    assert result.scores == {"village": 0, "suburb": 0, "city_center": 0}
    assert result.confidence == 0.33
    assert result.zone == "village"


def test_town_with_medium_density_leans_suburb():
    # town splits 15/15 between suburb and city; density 10-50 adds suburb 15, city 5
    result = determine_zone(place_signals(geocoded(town="Заславль")), density_metrics(2000, 0, 0, 0))
    assert result.scores["suburb"] == 30
    assert result.scores["city_center"] == 20
    assert result.zone == "suburb"


def test_city_wins_tie_with_suburb():
    # town alone splits 15/15; density 5-10 adds nothing
    result = determine_zone(place_signals(geocoded(town="Заславль")), density_metrics(500, 0, 0, 0))
    assert result.scores == {"village": 0, "suburb": 15, "city_center": 15}
    assert (result.zone, result.confidence) == ("city_center", 0.5)


def test_village_wins_tie_with_suburb():
    # sparse: village 15; farmers 20%: 10/10; services 30%: suburb 15, city 10
    result = determine_zone(place_signals(None), density_metrics(100, 20, 30, 0))
    assert result.scores == {"village": 25, "suburb": 25, "city_center": 10}
    assert (result.zone, result.confidence) == ("village", 0.42)


@pytest.mark.parametrize(
    "counts",
    [{"total": 0}, {"total": 10, "farmer": 10, "beauty": 10, "service": 10}, DENSE],
)
def test_confidence_stays_in_unit_interval(counts):
    classifier, _, _ = make_classifier(geocoded(village="x", suburb="y", city="z"), counts)
    result = asyncio.run(classifier.classify(53.9, 27.5))
    assert 0 <= result.confidence <= 1


def test_force_zone_bypasses_scoring():
    classifier, geocoder, _ = make_classifier(geocoded(city="Минск"), DENSE)

    forced = classifier.force_zone("city_center")

    assert (forced.zone, forced.confidence, forced.source) == ("city_center", 1.0, "manual")
    assert geocoder.calls == 0
    assert len(classifier.cache) == 0


def test_force_zone_rejects_unknown_zone():
    with pytest.raises(InvalidZoneError):
        GeoZoneClassifier.force_zone("downtown")
