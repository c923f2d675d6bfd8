"""FastAPI application serving crash records for the map."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from api import config, queries
from api.models import (
    Crash,
    CrashesRequest,
    CrashResult,
    CrashStats,
    FilterOptions,
    StatsRequest,
)
from api.rate_limit import RateLimiter, client_ip

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("crashmap.api")


def rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    fallback = request.client.host if request.client else None
    retry_after = limiter.check(client_ip(request.headers, fallback))
    if retry_after is not None:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please slow down.",
            headers={"Retry-After": str(retry_after)},
        )


def create_app(limiter: RateLimiter | None = None) -> FastAPI:
    app = FastAPI(
        title="CrashMap API",
        description="Bicyclist and pedestrian crash records with severity, date and geography filters",
        version="0.1.0",
        dependencies=[Depends(rate_limit)],
    )
    app.state.rate_limiter = limiter or RateLimiter(config.RATE_LIMIT_WINDOW, config.RATE_LIMIT_MAX)

    @app.get("/")
    def root():
        return {
            "message": "CrashMap API",
            "endpoints": [
                "/crashes", "/crashes/{colli_rpt_num}", "/crash-stats",
                "/filters", "/filters/counties", "/filters/cities",
            ],
        }

    @app.post("/crashes", response_model=CrashResult)
    def crashes(req: CrashesRequest):
        """Crashes matching the filter, newest first, plus the total match count."""
        return queries.get_crashes(req.filter, req.limit, req.offset)

    @app.get("/crashes/{colli_rpt_num}", response_model=Crash)
    def crash(colli_rpt_num: str):
        found = queries.get_crash(colli_rpt_num)
        if found is None:
            raise HTTPException(status_code=404, detail=f"No crash {colli_rpt_num!r}")
        return found

    @app.post("/crash-stats", response_model=CrashStats)
    def crash_stats(req: StatsRequest):
        return queries.get_crash_stats(req.filter)

    @app.get("/filters", response_model=FilterOptions)
    def filters():
        """Available states, years, severities, modes and the data date range."""
        return queries.get_filter_options()

    @app.get("/filters/counties", response_model=list[str])
    def counties(state: str | None = Query(None, description="State name")):
        return queries.get_counties(state)

    @app.get("/filters/cities", response_model=list[str])
    def cities(
        state: str | None = Query(None, description="State name"),
        county: str | None = Query(None, description="County name"),
    ):
        return queries.get_cities(state, county)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
