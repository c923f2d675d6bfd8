"""Pydantic request/response models for the crash query service."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Wire format is camelCase; Python code uses snake_case names.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BBox(_CamelModel):
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float


class CrashFilter(_CamelModel):
    severity: list[str | None] | None = None
    mode: str | None = None
    state: str | None = None
    county: str | None = None
    city: str | None = None
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    year: int | None = Field(None, ge=1, le=9999)
    include_no_injury: bool | None = None
    bbox: BBox | None = None


class CrashesRequest(_CamelModel):
    filter: CrashFilter | None = None
    limit: int = Field(1000, ge=0)
    offset: int = Field(0, ge=0)


class StatsRequest(_CamelModel):
    filter: CrashFilter | None = None


class Crash(_CamelModel):
    colli_rpt_num: str
    jurisdiction: str | None = None
    state: str | None = None
    region: str | None = None
    county: str | None = None
    city: str | None = None
    date: str | None = None
    crash_date: str | None = None
    time: str | None = None
    severity: str | None = None
    injury_type: str | None = None
    age_group: str | None = None
    involved_persons: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    mode: str | None = None


class CrashResult(_CamelModel):
    items: list[Crash]
    total_count: int


class ModeStat(_CamelModel):
    mode: str
    count: int


class SeverityStat(_CamelModel):
    severity: str
    count: int


class CountyStat(_CamelModel):
    county: str
    count: int


class CrashStats(_CamelModel):
    total_crashes: int
    total_fatal: int
    by_mode: list[ModeStat]
    by_severity: list[SeverityStat]
    by_county: list[CountyStat]


class FilterOptions(_CamelModel):
    states: list[str]
    years: list[int]
    severities: list[str]
    modes: list[str]
    min_date: str | None = None
    max_date: str | None = None
