"""Query clients used by the dashboard: over HTTP, or in-process."""

from __future__ import annotations

import logging
from collections.abc import Callable

import duckdb
import httpx

from api import queries
from api.models import CrashesRequest, CrashResult, FilterOptions

logger = logging.getLogger("crashmap.client")

OnSuccess = Callable[[CrashResult], None]
OnError = Callable[[Exception], None]


class QueryError(Exception):
    """A crash query could not be completed."""


class QueryClient:
    """Base client: subclasses implement the blocking fetch and option lookups."""

    def fetch(self, request: CrashesRequest) -> CrashResult:
        raise NotImplementedError

    def submit(self, request: CrashesRequest, on_success: OnSuccess, on_error: OnError) -> None:
        """Run a request and report through exactly one of the callbacks."""
        try:
            result = self.fetch(request)
        except QueryError as exc:
            on_error(exc)
            return
        on_success(result)


class HttpQueryClient(QueryClient):
    """Talks to the FastAPI service (``api.main``)."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, **params) -> object:
        try:
            resp = self._client.get(path, params={k: v for k, v in params.items() if v})
            resp.raise_for_status()
            return resp.json()
        # ValueError covers a body that is not JSON.
        except (httpx.HTTPError, ValueError) as exc:
            raise QueryError(f"GET {path} failed: {exc}") from exc

    def fetch(self, request: CrashesRequest) -> CrashResult:
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            resp = self._client.post("/crashes", json=body)
            resp.raise_for_status()
            return CrashResult.model_validate(resp.json())
        # pydantic.ValidationError and JSONDecodeError are both ValueErrors.
        except (httpx.HTTPError, ValueError) as exc:
            raise QueryError(f"crash query failed: {exc}") from exc

    def filter_options(self) -> FilterOptions:
        data = self._get("/filters")
        try:
            return FilterOptions.model_validate(data)
        except ValueError as exc:
            raise QueryError(f"unexpected filter options: {exc}") from exc

    def counties(self, state: str | None) -> list[str]:
        return _names(self._get("/filters/counties", state=state), "counties")

    def cities(self, state: str | None, county: str | None) -> list[str]:
        return _names(self._get("/filters/cities", state=state, county=county), "cities")


def _names(data: object, what: str) -> list[str]:
    if not isinstance(data, list):
        raise QueryError(f"unexpected {what} response: {data!r}")
    return [str(v) for v in data]


class LocalQueryClient(QueryClient):
    """Runs queries directly against the DuckDB query layer."""

    def _call(self, what: str, fn: Callable, *args):
        try:
            return fn(*args)
        except duckdb.Error as exc:
            raise QueryError(f"{what} failed: {exc}") from exc

    def fetch(self, request: CrashesRequest) -> CrashResult:
        raw = self._call("crash query", queries.get_crashes, request.filter, request.limit, request.offset)
        return CrashResult.model_validate(raw)

    def filter_options(self) -> FilterOptions:
        return FilterOptions.model_validate(self._call("filter options", queries.get_filter_options))

    def counties(self, state: str | None) -> list[str]:
        return self._call("county lookup", queries.get_counties, state)

    def cities(self, state: str | None, county: str | None) -> list[str]:
        return self._call("city lookup", queries.get_cities, state, county)
