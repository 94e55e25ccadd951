"""
Google Flights search through SerpApi.

The raw SerpApi payload is large and deeply nested.  The tool keeps only the top offers and projects
each of them onto a handful of flat fields, so the observation stays small enough for the planner to
summarise reliably.
"""

import json
import logging
from datetime import date
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Union,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
)

from wayfarer.config import settings
from wayfarer.tools import (
    Tool,
    ToolUpstreamError,
)

logger = logging.getLogger(__name__)

MAX_OFFERS = 5
NO_FLIGHTS_MESSAGE = "No flights found matching criteria."

# SerpApi google_flights "type" parameter
_ROUND_TRIP = 1
_ONE_WAY = 2


class FlightSearchArgs(BaseModel):
    """Arguments accepted by :class:`FlightSearchTool`."""

    departure_city_or_airport: str = Field(
        ...,
        min_length=1,
        description="The departure city, airport name, or airport code. e.g., 'Wroclaw', 'WRO'",
    )
    arrival_city_or_airport: str = Field(
        ...,
        min_length=1,
        description="The arrival city, airport name, or airport code. e.g., 'Warsaw', 'WAW'",
    )
    departure_date: str = Field(
        ...,
        description=(
            "The departure date in YYYY-MM-DD format. Convert relative dates like "
            "'this Friday' to this format."
        ),
    )
    return_date: Optional[str] = Field(
        None, description="The return date in YYYY-MM-DD format. Required only for round trips."
    )

    @field_validator("departure_city_or_airport", "arrival_city_or_airport")
    @classmethod
    def _strip_place(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("departure_date", "return_date")
    @classmethod
    def _iso_date(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None:
            return None
        try:
            parsed = date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"'{value}' is not a YYYY-MM-DD date") from exc
        if info.field_name == "return_date":
            outbound = info.data.get("departure_date")
            if outbound and parsed < date.fromisoformat(outbound):
                raise ValueError("return date is before the departure date")
        return parsed.isoformat()


class FlightOffer(BaseModel):
    """Projection of one SerpApi offer onto the fields the planner needs."""

    price: Optional[Union[int, float]] = None
    airline: Optional[str] = None
    departure: Optional[str] = None
    arrival: Optional[str] = None
    duration_in_minutes: Optional[Union[int, float]] = None
    stops: int = 0
    type: Optional[str] = None


def project_offer(offer: Mapping[str, Any]) -> FlightOffer:
    """Flatten one ``best_flights``/``other_flights`` entry."""
    legs: List[Mapping[str, Any]] = offer.get("flights") or []
    first = legs[0] if legs else {}
    last = legs[-1] if legs else {}
    layovers = offer.get("layovers")
    # Stops are layovers on the itinerary; travel class plays no part here.
    stops = len(layovers) if layovers is not None else max(len(legs) - 1, 0)
    return FlightOffer(
        price=offer.get("price"),
        airline=first.get("airline"),
        departure=(first.get("departure_airport") or {}).get("time"),
        arrival=(last.get("arrival_airport") or {}).get("time"),
        duration_in_minutes=offer.get("total_duration"),
        stops=stops,
        type=offer.get("type"),
    )


def prune_offers(payload: Mapping[str, Any], limit: int = MAX_OFFERS) -> List[FlightOffer]:
    """
    Keep the top *limit* offers, ``best_flights`` first and then ``other_flights``.

    Raises
    ------
    ToolUpstreamError
        If the payload carries an ``error`` field and no offers.
    """
    offers = list(payload.get("best_flights") or []) + list(payload.get("other_flights") or [])
    if not offers and payload.get("error"):
        raise ToolUpstreamError(f"API Error: {payload['error']}")
    return [project_offer(offer) for offer in offers[:limit]]


class FlightSearchTool(Tool):
    """Searches for flight prices, routes, and schedules."""

    name = "google_flights_search"
    description = (
        "Searches for flight prices, routes, and schedules. Use this tool for any queries about "
        "finding specific flights, prices, departures, or arrivals."
    )
    args_model = FlightSearchArgs

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        client: httpx.Client | None = None,
    ):
        self._api_key = api_key or settings.SERPAPI_API_KEY
        self._endpoint = endpoint or settings.SERPAPI_ENDPOINT
        self._client = client

    def _params(self, args: FlightSearchArgs) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "api_key": self._api_key,
            "engine": "google_flights",
            "departure_id": args.departure_city_or_airport,
            "arrival_id": args.arrival_city_or_airport,
            "outbound_date": args.departure_date,
            "type": _ROUND_TRIP if args.return_date else _ONE_WAY,
            "currency": settings.FLIGHT_CURRENCY,
            "hl": "en",
            "gl": "us",
        }
        if args.return_date:
            params["return_date"] = args.return_date
        return params

    def _fetch(self, params: Dict[str, Any]) -> Mapping[str, Any]:
        try:
            if self._client is not None:
                resp = self._client.get(self._endpoint, params=params)
            else:
                with httpx.Client(timeout=settings.REQUEST_TIMEOUT) as client:
                    resp = client.get(self._endpoint, params=params)
            payload = resp.json()
        except httpx.HTTPError as exc:
            raise ToolUpstreamError(f"Error during flight search: {exc}") from exc
        except ValueError as exc:
            raise ToolUpstreamError("Flight search returned a non-JSON response") from exc

        if resp.is_error and not (isinstance(payload, dict) and payload.get("error")):
            raise ToolUpstreamError(f"Flight search failed with HTTP {resp.status_code}")
        if not isinstance(payload, dict):
            raise ToolUpstreamError("Flight search returned an unexpected payload")
        return payload

    def run(self, args: FlightSearchArgs) -> str:
        if not self._api_key:
            raise ToolUpstreamError("Flight search is not configured (SERPAPI_API_KEY is unset)")

        logger.info(
            "Searching flights %s -> %s on %s (return %s)",
            args.departure_city_or_airport,
            args.arrival_city_or_airport,
            args.departure_date,
            args.return_date or "none",
        )
        payload = self._fetch(self._params(args))
        offers = prune_offers(payload)
        if not offers:
            return NO_FLIGHTS_MESSAGE
        return json.dumps([offer.model_dump() for offer in offers])
