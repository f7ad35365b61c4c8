import asyncio

import httpx
import pytest

from services.geocoding import GeocodingError, ReverseGeocodingService, parse_nominatim

NOMINATIM_REPLY = {
    "place_rank": 18,
    "display_name": "Уручье, Минск, Беларусь",
    "address": {"suburb": "Уручье", "city": "Минск", "country_code": "by"},
}


def make_service(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ReverseGeocodingService(base_url="https://geo.test/", client=client)


def test_parse_nominatim_label_and_city():
    parsed = parse_nominatim(NOMINATIM_REPLY)
    assert parsed["label"] == "Уручье, Минск"
    assert parsed["city"] == "Минск"
    assert parsed["countryCode"] == "BY"
    assert parsed["raw"]["address"]["suburb"] == "Уручье"


def test_resolve_sends_reverse_query():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json=NOMINATIM_REPLY)

    result = asyncio.run(make_service(handler).resolve(53.94, 27.68))

    assert result["city"] == "Минск"
    assert seen["url"].path == "/reverse"
    assert seen["url"].params["lon"] == "27.68"
    assert seen["url"].params["format"] == "jsonv2"
    assert seen["agent"]


def test_resolve_returns_none_for_unknown_place():
    service = make_service(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    assert asyncio.run(service.resolve(0.0, 0.0)) is None


def test_resolve_wraps_http_errors():
    service = make_service(lambda request: httpx.Response(503))
    with pytest.raises(GeocodingError):
        asyncio.run(service.resolve(53.9, 27.5))
