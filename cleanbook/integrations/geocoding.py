"""Address search for the address step.

Queries a Mapbox-compatible places endpoint restricted to one country and
biased toward the business area. When the provider is unreachable, not
configured, or returns only a handful of hits, suggestions are topped up
from a local list of known towns so the customer can always continue.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from cleanbook.config import GeocodingConfig, settings
from cleanbook.schemas.cart_schema import AddressRef

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
PROVIDER_LIMIT = 10
FALLBACK_THRESHOLD = 5
MAX_SUGGESTIONS = 8
RESULT_TYPES = "address,poi,place"

DEFAULT_CITY = "Ville"
DEFAULT_POSTCODE = "1000"

# (name, (lon, lat), region)
FALLBACK_CITIES: list[tuple[str, tuple[float, float], str]] = [
    ("Sion", (7.3603, 46.2044), "Valais"),
    ("Sierre", (7.5348, 46.2919), "Valais"),
    ("Martigny", (7.0673, 46.1024), "Valais"),
    ("Monthey", (6.9581, 46.2508), "Valais"),
    ("Brig-Glis", (7.9873, 46.3189), "Valais"),
    ("Saint-Maurice", (7.0034, 46.2187), "Valais"),
    ("Visp", (7.8847, 46.2929), "Valais"),
    ("Lausanne", (6.6323, 46.5197), "Vaud"),
    ("Genève", (6.1432, 46.2044), "Genève"),
    ("Montreux", (6.9114, 46.4312), "Vaud"),
    ("Vevey", (6.8434, 46.4601), "Vaud"),
    ("Neuchâtel", (6.9310, 46.9929), "Neuchâtel"),
    ("Fribourg", (7.1512, 46.8058), "Fribourg"),
    ("Berne", (7.4474, 46.9481), "Berne"),
    ("Zurich", (8.5417, 47.3769), "Zurich"),
    ("Bâle", (7.5886, 47.5596), "Bâle-Ville"),
]


class ContextEntry(BaseModel):
    id: str
    text: str = ""


class GeocodingSuggestion(BaseModel):
    """One feature as returned by the places endpoint."""
    id: str
    place_name: str
    center: Optional[tuple[float, float]] = None
    properties: dict[str, Any] = Field(default_factory=dict)
    context: list[ContextEntry] = Field(default_factory=list)

    def context_text(self, *kinds: str) -> Optional[str]:
        for entry in self.context:
            if any(kind in entry.id for kind in kinds):
                return entry.text
        return None

    def to_address(self) -> AddressRef:
        return AddressRef(
            id=self.id,
            place_name=self.place_name,
            center=self.center,
            address=self.properties.get("address") or self.place_name.split(",")[0],
            city=self.context_text("place", "region") or DEFAULT_CITY,
            postcode=self.context_text("postcode") or DEFAULT_POSTCODE,
        )


def fallback_suggestions(query: str) -> list[GeocodingSuggestion]:
    """Known towns whose name contains the query, case-insensitively."""
    needle = query.lower()
    return [
        GeocodingSuggestion(
            id=f"fallback_{name}",
            place_name=f"{name}, {region}, Suisse",
            center=coords,
            properties={"address": name},
            context=[
                ContextEntry(id="place", text=name),
                ContextEntry(id="region", text=region),
                ContextEntry(id="country", text="Suisse"),
            ],
        )
        for name, coords, region in FALLBACK_CITIES
        if needle in name.lower()
    ]


def _unique(suggestions: list[GeocodingSuggestion]) -> list[GeocodingSuggestion]:
    seen: set[str] = set()
    unique = []
    for suggestion in suggestions:
        if suggestion.place_name in seen:
            continue
        seen.add(suggestion.place_name)
        unique.append(suggestion)
    return unique[:MAX_SUGGESTIONS]


class Geocoder:
    """Async address search with a local fallback."""

    def __init__(
        self,
        config: Optional[GeocodingConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or settings.geocoding
        self._client = client

    def _params(self) -> dict[str, str]:
        return {
            "access_token": self.config.token,
            "country": self.config.country,
            "types": RESULT_TYPES,
            "limit": str(PROVIDER_LIMIT),
            "language": self.config.language,
            "proximity": self.config.proximity,
            "bbox": self.config.bbox,
        }

    async def _fetch(self, query: str) -> list[GeocodingSuggestion]:
        url = f"{self.config.base_url.rstrip('/')}/{quote(query)}.json"
        if self._client is not None:
            resp = await self._client.get(url, params=self._params())
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout_sec) as client:
                resp = await client.get(url, params=self._params())
        resp.raise_for_status()
        features = resp.json().get("features") or []
        return [GeocodingSuggestion.model_validate(f) for f in features]

    async def search(self, query: str) -> list[GeocodingSuggestion]:
        """Up to eight distinct suggestions for a partial address."""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        if not self.config.token:
            logger.debug("No geocoding token configured, using local towns")
            return _unique(fallback_suggestions(query))

        try:
            features = await self._fetch(query)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding provider failed, using local towns: %s", exc)
            return _unique(fallback_suggestions(query))

        if len(features) < FALLBACK_THRESHOLD:
            features = features + fallback_suggestions(query)
        return _unique(features)
