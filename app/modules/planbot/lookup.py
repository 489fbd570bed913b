"""
Place and movie lookups used by /plan and /planmovies, plus optional LLM re-ranking.

Places come from Google Places text search when an API key is configured,
otherwise from OpenStreetMap (Nominatim geocoding, then an Overpass amenity
query around the hit). Movies come from TMDB discover filtered by genre.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, Field

from app.config.settings import Settings
from app.core.exceptions import ExternalLookupError

logger = logging.getLogger(__name__)

GOOGLE_TEXTSEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
TMDB_POSTER_URL = "https://image.tmdb.org/t/p/w500"

# /plan category word -> Overpass amenity regex
AMENITY_MAP = {
    "cafe": "cafe",
    "cafes": "cafe",
    "coffee": "cafe",
    "restaurant": "restaurant",
    "restaurants": "restaurant",
    "bar": "bar|pub",
    "bars": "bar|pub",
    "pub": "bar|pub",
    "food": "restaurant|cafe|fast_food",
}
DEFAULT_CATEGORY = "cafe"

TMDB_GENRES = {
    "action": 28,
    "adventure": 12,
    "animation": 16,
    "comedy": 35,
    "crime": 80,
    "documentary": 99,
    "drama": 18,
    "family": 10751,
    "fantasy": 14,
    "history": 36,
    "horror": 27,
    "music": 10402,
    "mystery": 9648,
    "romance": 10749,
    "science fiction": 878,
    "sci-fi": 878,
    "thriller": 53,
    "war": 10752,
    "western": 37,
}


class Candidate(BaseModel):
    """One search hit PlanBot can list, select and turn into a poll."""
    id: str
    title: str
    description: str = ""
    image: Optional[str] = ""
    rating: Optional[float] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


def split_category(text: str) -> Tuple[str, str]:
    """Pull the first category word out of free text: 'cafe connaught place' -> ('cafe', 'connaught place')."""
    words = text.split()
    for i, word in enumerate(words):
        if word.lower() in AMENITY_MAP:
            location = " ".join(words[:i] + words[i + 1:])
            return word.lower().rstrip("s"), location or text
    return DEFAULT_CATEGORY, text


def genre_ids(genres: Sequence[str]) -> List[int]:
    ids = []
    for name in genres:
        genre_id = TMDB_GENRES.get(name.strip().lower())
        if genre_id is None:
            logger.debug(f"Unknown genre {name!r} ignored")
        elif genre_id not in ids:
            ids.append(genre_id)
    return ids


class LookupProvider(ABC):
    @abstractmethod
    async def search_places(self, text: str) -> List[Candidate]:
        ...

    @abstractmethod
    async def search_movies_by_genres(self, genres: Sequence[str]) -> List[Candidate]:
        ...

    async def aclose(self) -> None:
        pass


class HttpLookupProvider(LookupProvider):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.lookup_timeout_seconds,
            headers={"User-Agent": settings.lookup_user_agent},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, source: str, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"{source} lookup timed out: {e}")
            raise ExternalLookupError(
                f"{source} did not answer within {self.settings.lookup_timeout_seconds:g}s"
            ) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"{source} lookup failed with HTTP {e.response.status_code}")
            raise ExternalLookupError(f"{source} returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.warning(f"{source} lookup failed: {e}")
            raise ExternalLookupError(f"Could not reach {source}") from e
        except ValueError as e:
            raise ExternalLookupError(f"{source} returned an unreadable response") from e

    async def search_places(self, text: str) -> List[Candidate]:
        if self.settings.google_places_api_key:
            return await self._search_google(text)
        return await self._search_osm(text)

    async def _search_google(self, text: str) -> List[Candidate]:
        data = await self._request(
            "Google Places",
            "GET",
            GOOGLE_TEXTSEARCH_URL,
            params={"query": text, "key": self.settings.google_places_api_key},
        )
        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise ExternalLookupError(data.get("error_message") or f"Google Places status {status}")
        candidates = []
        for place in data.get("results") or []:
            location = (place.get("geometry") or {}).get("location") or {}
            candidates.append(Candidate(
                id=place["place_id"],
                title=place.get("name") or "Unnamed Place",
                description=place.get("formatted_address") or place.get("vicinity") or "",
                rating=place.get("rating"),
                extra={
                    "types": place.get("types") or [],
                    "latitude": location.get("lat"),
                    "longitude": location.get("lng"),
                },
            ))
        logger.info(f"Google Places returned {len(candidates)} result(s) for {text!r}")
        return candidates

    async def _search_osm(self, text: str) -> List[Candidate]:
        category, location = split_category(text)
        hits = await self._request(
            "Nominatim",
            "GET",
            self.settings.nominatim_url,
            params={"q": location, "format": "json", "limit": 1, "addressdetails": 1},
        )
        if not hits:
            logger.info(f"Nominatim found nothing for {location!r}")
            return []
        lat, lon = hits[0]["lat"], hits[0]["lon"]
        amenity = AMENITY_MAP.get(category, AMENITY_MAP[DEFAULT_CATEGORY])
        query = (
            "[out:json][timeout:25];"
            f'(node["amenity"~"{amenity}"](around:{self.settings.places_radius_meters},{lat},{lon}););'
            "out body 20;"
        )
        data = await self._request("Overpass", "POST", self.settings.overpass_url, data={"data": query})
        candidates = [
            self._osm_candidate(element)
            for element in data.get("elements") or []
            if (element.get("tags") or {}).get("name")
        ]
        logger.info(f"Overpass returned {len(candidates)} {category} result(s) near {location!r}")
        return candidates

    @staticmethod
    def _osm_candidate(element: Dict[str, Any]) -> Candidate:
        tags = element["tags"]
        address = ", ".join(
            tags[key]
            for key in ("addr:housenumber", "addr:street", "addr:city", "addr:postcode", "addr:country")
            if tags.get(key)
        )
        if not address:
            address = f"{element['lat']:.6f}, {element['lon']:.6f}"
        types = [tags[key] for key in ("amenity", "cuisine") if tags.get(key)]
        try:
            rating = float(tags["rating"]) if tags.get("rating") else None
        except ValueError:
            rating = None
        return Candidate(
            id=f"osm_{element['type']}_{element['id']}",
            title=tags["name"],
            description=address,
            rating=rating,
            extra={"types": types, "latitude": element.get("lat"), "longitude": element.get("lon")},
        )

    async def search_movies_by_genres(self, genres: Sequence[str]) -> List[Candidate]:
        if not self.settings.tmdb_api_key:
            raise ExternalLookupError("Movie search is not configured")
        ids = genre_ids(genres)
        if not ids:
            return []
        data = await self._request(
            "TMDB",
            "GET",
            f"{self.settings.tmdb_base_url.rstrip('/')}/discover/movie",
            params={
                "api_key": self.settings.tmdb_api_key,
                "with_genres": "|".join(str(i) for i in ids),
                "sort_by": "popularity.desc",
                "include_adult": "false",
                "language": "en-US",
                "page": 1,
            },
        )
        candidates = [
            Candidate(
                id=str(movie["id"]),
                title=movie.get("title") or "Untitled",
                description=movie.get("overview") or "",
                image=f"{TMDB_POSTER_URL}{movie['poster_path']}" if movie.get("poster_path") else "",
                rating=movie.get("vote_average"),
                extra={"release_date": movie.get("release_date") or None},
            )
            for movie in data.get("results") or []
        ]
        logger.info(f"TMDB returned {len(candidates)} movie(s) for genres {list(genres)}")
        return candidates


class Reranker(ABC):
    @abstractmethod
    async def rerank(self, query: str, candidates: List[Candidate]) -> List[Candidate]:
        ...

    async def aclose(self) -> None:
        pass


class NoopReranker(Reranker):
    async def rerank(self, query: str, candidates: List[Candidate]) -> List[Candidate]:
        return list(candidates)


class LLMReranker(Reranker):
    """Asks an OpenAI-compatible chat model to order candidates. Any failure keeps provider order."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.lookup_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @property
    def base_url(self) -> str:
        if self.settings.llm_provider == "openrouter":
            return "https://openrouter.ai/api/v1"
        return "https://api.openai.com/v1"

    def _prompt(self, query: str, candidates: List[Candidate]) -> str:
        items = [
            {"title": c.title, "rating": c.rating, "types": c.extra.get("types"), "address": c.description}
            for c in candidates
        ]
        return (
            f"Request: {query}\n\nCandidates (JSON array): {json.dumps(items)}\n\n"
            'Return JSON {"indices": [...]} with 0-based candidate indices, best match first.'
        )

    async def rerank(self, query: str, candidates: List[Candidate]) -> List[Candidate]:
        if len(candidates) < 2:
            return list(candidates)
        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
                json={
                    "model": self.settings.get_llm_model(),
                    "messages": [
                        {
                            "role": "system",
                            "content": "You rerank places and movies for a group outing. "
                                       "Favor good ratings and a close match to the request. Return strict JSON only.",
                        },
                        {"role": "user", "content": self._prompt(query, candidates)},
                    ],
                    "response_format": {"type": "json_object"},
                },
            )
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            parsed = json.loads(content)
        except Exception as e:
            logger.warning(f"LLM rerank failed, keeping provider order: {e}")
            return list(candidates)

        indices = parsed if isinstance(parsed, list) else parsed.get("indices", []) if isinstance(parsed, dict) else []
        order: List[int] = []
        for i in indices:
            if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < len(candidates) and i not in order:
                order.append(i)
        if not order:
            return list(candidates)
        # anything the model left out keeps its provider position after the picks
        order += [i for i in range(len(candidates)) if i not in order]
        return [candidates[i] for i in order]


def build_reranker(settings: Settings) -> Reranker:
    if settings.llm_api_key:
        return LLMReranker(settings)
    return NoopReranker()
