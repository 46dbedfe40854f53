from pydantic import BaseModel
from typing import Optional, Literal

class RefreshRun(BaseModel):
    run_id: str

class ChainRecord(BaseModel):
    chain: str
    stable_tvl: float
    defi_tvl: float
    stable_supply: float
    util_percent: float
    stbl_defi_percent: float
    rank: int

class Totals(BaseModel):
    stable_tvl: float
    defi_tvl: float
    stable_supply: float
    util_percent: float
    stbl_defi_percent: float

class Snapshot(BaseModel):
    timestamp: str
    chains: list[ChainRecord]
    totals: Totals

class WeeklyAnalysis(BaseModel):
    timestamp: str
    bullets: list[str]

class Change(BaseModel):
    tvl_change_percent: float
    util_change_points: float

class ChainChange(BaseModel):
    chain: str
    rank: int
    previous_rank: Optional[int] = None
    change: Optional[Change] = None

class WeeklyComparison(BaseModel):
    current_timestamp: str
    previous_timestamp: Optional[str] = None
    chains: list[ChainChange]
    totals: Optional[Change] = None

class StatusResponse(BaseModel):
    run_id: str
    kind: Literal['refresh','weekly']
    status: Literal['running','succeeded','skipped','failed']
    started_at_utc: str
    finished_at_utc: Optional[str] = None
    error_message: Optional[str] = None
    snapshot_timestamp: Optional[str] = None
