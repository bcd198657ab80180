import logging
from typing import Awaitable, Callable, List, Optional

import httpx

from infrastructure.exceptions import TitleLookupError

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, Optional[int]], Awaitable[Optional[str]]]


def fallback_candidates(title: str) -> List[str]:
    """
    Reduced titles tried after the full title found nothing: first drop leading
    words one at a time, then trailing words, always keeping at least one word.
    """
    words = title.strip().split()
    if len(words) <= 1:
        return []
    leading = [" ".join(words[i:]) for i in range(1, len(words))]
    trailing = [" ".join(words[:i]) for i in range(len(words) - 1, 0, -1)]
    return leading + trailing


async def search_with_fallback(search: SearchFn, title: str, year: Optional[int] = None) -> Optional[str]:
    """Runs the fallback ladder against one catalog search; first hit wins."""
    result = await search(title, year)
    if result:
        return result

    logger.info(f"CLASSIFIER: No results for full title \"{title}\", trying fallback strategy...")
    for candidate in fallback_candidates(title):
        logger.info(f"CLASSIFIER: Trying reduced title \"{candidate}\"")
        result = await search(candidate, year)
        if result:
            return result
    return None


class TitleLookupService:
    """
    Resolves canonical English titles through the TMDB search API.
    Any transport or payload problem is logged and reported as "no result".
    """

    def __init__(
        self,
        api_token: Optional[str],
        base_url: str = "https://api.themoviedb.org/3",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_token)

    async def find_movie_title(self, title: str, year: Optional[int] = None) -> Optional[str]:
        return await search_with_fallback(self.search_movie, title, year)

    async def find_show_title(self, title: str, year: Optional[int] = None) -> Optional[str]:
        return await search_with_fallback(self.search_show, title, year)

    async def search_movie(self, title: str, year: Optional[int] = None) -> Optional[str]:
        params = {"query": title}
        if year:
            params["year"] = str(year)
        return await self._first_result("/search/movie", params, "title")

    async def search_show(self, title: str, year: Optional[int] = None) -> Optional[str]:
        params = {"query": title}
        if year:
            params["first_air_date_year"] = str(year)
        return await self._first_result("/search/tv", params, "name")

    async def _first_result(self, endpoint: str, params: dict, field: str) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            data = await self._get(endpoint, params)
        except TitleLookupError as e:
            logger.error(f"CLASSIFIER: Title lookup failed for \"{params.get('query')}\": {e}")
            return None

        results = data.get("results") if isinstance(data, dict) else None
        if results:
            first = results[0] or {}
            value = first.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    async def _get(self, endpoint: str, params: dict) -> dict:
        query = {"include_adult": "false", "language": "en-US", "page": "1", **params}
        headers = {"accept": "application/json", "Authorization": f"Bearer {self.api_token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}{endpoint}", params=query, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise TitleLookupError(f"TMDB request to {endpoint} failed: {e}", original_error=e)
        except ValueError as e:
            raise TitleLookupError(f"TMDB returned invalid JSON for {endpoint}", original_error=e)
