"""Tests for the SerpApi flight search tool."""

import json
from typing import (
    Any,
    Dict,
    List,
)

import httpx
import pytest

from wayfarer.core.schema import (
    ToolCall,
    ToolErrorKind,
)
from wayfarer.tools.flight_search import (
    NO_FLIGHTS_MESSAGE,
    FlightSearchTool,
    project_offer,
)

VALID_ARGS = {
    "departure_city_or_airport": "WRO",
    "arrival_city_or_airport": "WAW",
    "departure_date": "2025-06-01",
}


def _offer(price: int, legs: int = 1, **extra: Any) -> Dict[str, Any]:
    flights = [
        {
            "airline": f"Air{i}",
            "travel_class": "Economy",
            "departure_airport": {"id": "WRO", "time": f"2025-06-01 0{i}:00"},
            "arrival_airport": {"id": "WAW", "time": f"2025-06-01 1{i}:00"},
        }
        for i in range(legs)
    ]
    offer = {"flights": flights, "price": price, "total_duration": 60 * legs, "type": "One way"}
    return offer | extra


class _Recorder:
    """httpx transport handler that returns a canned payload and records requests."""

    def __init__(self, payload: Any, status: int = 200):
        self.payload = payload
        self.status = status
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.payload)


def _tool(handler) -> FlightSearchTool:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return FlightSearchTool(
        api_key="test-key", endpoint="https://serp.test/search.json", client=client
    )


def _search(tool: FlightSearchTool, **overrides: Any):
    return tool(ToolCall(name=tool.name, args=VALID_ARGS | overrides))


@pytest.mark.parametrize("count, expected", [(8, 5), (5, 5), (3, 3)])
def test_offers_are_pruned_to_five(count: int, expected: int) -> None:
    handler = _Recorder({"best_flights": [_offer(100 + i) for i in range(count)]})

    result = _search(_tool(handler))
    offers = json.loads(result.content)

    assert result.ok
    assert len(offers) == expected
    assert [o["price"] for o in offers] == [100 + i for i in range(expected)]
    assert set(offers[0]) == {
        "price",
        "airline",
        "departure",
        "arrival",
        "duration_in_minutes",
        "stops",
        "type",
    }


def test_other_flights_used_when_no_best_flights() -> None:
    handler = _Recorder({"best_flights": [], "other_flights": [_offer(250)]})

    offers = json.loads(_search(_tool(handler)).content)

    assert offers[0]["price"] == 250


def test_other_flights_top_up_short_best_flights() -> None:
    handler = _Recorder(
        {
            "best_flights": [_offer(100), _offer(110)],
            "other_flights": [_offer(200 + i) for i in range(8)],
        }
    )

    offers = json.loads(_search(_tool(handler)).content)

    assert [o["price"] for o in offers] == [100, 110, 200, 201, 202]


def test_zero_offers_gives_explicit_message() -> None:
    result = _search(_tool(_Recorder({"search_metadata": {"status": "Success"}})))

    assert result.ok
    assert result.content == NO_FLIGHTS_MESSAGE


def test_api_error_is_upstream_error() -> None:
    result = _search(_tool(_Recorder({"error": "Invalid API key."}, status=401)))

    assert result.error is ToolErrorKind.UPSTREAM_ERROR
    assert "API Error: Invalid API key." in result.content


def test_transport_failure_is_upstream_error() -> None:
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _search(_tool(boom))

    assert result.error is ToolErrorKind.UPSTREAM_ERROR
    assert "connection refused" in result.content


def test_http_error_without_body_is_upstream_error() -> None:
    result = _search(_tool(_Recorder({}, status=500)))

    assert result.error is ToolErrorKind.UPSTREAM_ERROR
    assert "HTTP 500" in result.content


def test_missing_arguments_never_call_remote() -> None:
    handler = _Recorder({"best_flights": [_offer(1)]})
    tool = _tool(handler)

    result = tool(ToolCall(name=tool.name, args={"departure_city_or_airport": "WRO"}))

    assert result.error is ToolErrorKind.INVALID_ARGUMENTS
    assert result.fields == ["arrival_city_or_airport", "departure_date"]
    assert handler.requests == []


def test_malformed_date_is_invalid_argument() -> None:
    handler = _Recorder({"best_flights": []})

    result = _search(_tool(handler), departure_date="next friday")

    assert result.error is ToolErrorKind.INVALID_ARGUMENTS
    assert result.fields == ["departure_date"]
    assert handler.requests == []


def test_return_before_departure_is_invalid() -> None:
    result = _search(_tool(_Recorder({})), return_date="2025-05-01")

    assert result.error is ToolErrorKind.INVALID_ARGUMENTS
    assert result.fields == ["return_date"]


def test_query_parameters_one_way_and_round_trip() -> None:
    handler = _Recorder({"best_flights": [_offer(1)]})
    tool = _tool(handler)

    _search(tool)
    _search(tool, return_date="2025-06-08")

    one_way, round_trip = (dict(r.url.params) for r in handler.requests)
    assert one_way["engine"] == "google_flights"
    assert one_way["departure_id"] == "WRO"
    assert one_way["arrival_id"] == "WAW"
    assert one_way["outbound_date"] == "2025-06-01"
    assert one_way["type"] == "2"
    assert "return_date" not in one_way
    assert round_trip["type"] == "1"
    assert round_trip["return_date"] == "2025-06-08"


def test_missing_api_key_is_upstream_error() -> None:
    handler = _Recorder({})
    client = httpx.Client(transport=httpx.MockTransport(handler))
    tool = FlightSearchTool(api_key="", client=client)
    tool._api_key = None  # pylint: disable=protected-access

    result = _search(tool)

    assert result.error is ToolErrorKind.UPSTREAM_ERROR
    assert handler.requests == []


def test_stops_do_not_depend_on_travel_class() -> None:
    """Stops come from the itinerary shape only."""
    direct = project_offer(_offer(100, legs=1))
    two_legs = project_offer(_offer(100, legs=2))
    with_layovers = project_offer(_offer(100, legs=3, layovers=[{"id": "FRA"}, {"id": "MUC"}]))

    assert direct.stops == 0
    assert two_legs.stops == 1
    assert with_layovers.stops == 2
    assert two_legs.departure == "2025-06-01 00:00"
    assert two_legs.arrival == "2025-06-01 11:00"
