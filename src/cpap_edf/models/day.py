"""Pydantic models for daily and nightly report data."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from cpap_edf.models.machine import DeviceInfo
from cpap_edf.models.session import SessionFile


class SleepNight(BaseModel):
    """Therapy usage attributed to one sleep night."""

    model_config = ConfigDict(frozen=True)

    date: date
    total_minutes: float = Field(default=0.0, description="Summed session minutes")
    session_count: int = Field(default=0, description="Number of sessions")

    @property
    def total_hours(self) -> float:
        return self.total_minutes / 60


class DailyStats(BaseModel):
    """Named summary fields for one day of STR.edf data."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2024-01-05",
                "ahi": 2.3,
                "usage_hours": 7.4,
                "leak_50": 4.2,
                "pressure": 8.6,
            }
        }
    )

    date: str = Field(description="ISO date, or 'Day N' when the start date is unknown")
    usage_hours: float = Field(
        default=0.0, description="Nightly session total, else OnDuration"
    )

    ahi: float = Field(default=0.0, description="Apnea-Hypopnea Index")
    ai: float = Field(default=0.0, description="Apnea Index")
    hi: float = Field(default=0.0, description="Hypopnea Index")
    oai: float = Field(default=0.0, description="Obstructive Apnea Index")
    cai: float = Field(default=0.0, description="Central Apnea Index")
    uai: float = Field(default=0.0, description="Unclassified Apnea Index")

    duration: float = Field(default=0.0, description="Recorded minutes")
    on_duration: float = Field(default=0.0, description="Mask-on minutes")
    patient_hours_cumulative: float = Field(
        default=0.0, description="Cumulative device hours"
    )

    leak_50: float = Field(default=0.0, description="Median leak (L/s)")
    leak_95: float = Field(default=0.0, description="95th percentile leak (L/s)")
    leak_max: float = Field(default=0.0, description="Maximum leak (L/s)")
    mask_press_50: float = Field(default=0.0, description="Median mask pressure")
    mask_press_95: float = Field(default=0.0, description="95th percentile pressure")
    resp_rate_50: float = 0.0
    resp_rate_95: float = 0.0
    tid_vol_50: float = 0.0
    tid_vol_95: float = 0.0
    min_vent_50: float = 0.0
    min_vent_95: float = 0.0

    csr: float = Field(default=0.0, description="Cheyne-Stokes respiration")
    rin: float = Field(default=0.0, description="RERA index")
    mode: float = Field(default=0.0, description="Therapy mode code")
    pressure: float = Field(default=0.0, description="Set or minimum pressure")
    max_pressure: float = Field(default=0.0, description="Maximum pressure")
    epr_level: float = 0.0
    mask_on: float = 0.0
    mask_off: float = 0.0

    spo2_avg: float = 0.0
    spo2_min: float = 0.0
    spo2_max: float = 0.0
    pulse_avg: float = 0.0
    pulse_min: float = 0.0
    pulse_max: float = 0.0

    raw: dict[str, float] = Field(
        default_factory=dict, description="Every decoded label for the day"
    )


class SummaryAverages(BaseModel):
    """Averages over the most recent days."""

    ahi: float = 0.0
    usage_hours: float = 0.0
    leak_50: float = 0.0


class CPAPSummary(BaseModel):
    """Overall view of an SD card."""

    device_info: DeviceInfo
    total_days: int = Field(default=0, description="Days with recorded usage")
    recent_days: int = Field(default=0, description="Days included in averages")
    averages: SummaryAverages = Field(default_factory=SummaryAverages)
    daily_stats: list[DailyStats] = Field(default_factory=list)
    sessions: list[SessionFile] = Field(default_factory=list)
    error: str | None = None
