"""
Constants and mappings for ResMed EDF data decoding.

Byte layout values follow the EDF standard; summary field aliases
reflect labels observed in STR.edf files across AirSense/AirCurve firmware.
"""

from pathlib import Path

# ============================================================================
# EDF Header Layout
# ============================================================================

EDF_HEADER_SIZE = 256
EDF_SIGNAL_HEADER_SIZE = 256
EDF_SAMPLE_BYTES = 2

# (field name, offset, length) for the fixed 256-byte preamble
EDF_HEADER_FIELDS: tuple[tuple[str, int, int], ...] = (
    ("version", 0, 8),
    ("patient_id", 8, 80),
    ("recording_id", 88, 80),
    ("start_date", 168, 8),
    ("start_time", 176, 8),
    ("header_bytes", 184, 8),
    ("reserved", 192, 44),
    ("num_data_records", 236, 8),
    ("data_record_duration", 244, 8),
    ("num_signals", 252, 4),
)

# (field name, width) for the signal header column blocks, in file order
EDF_SIGNAL_FIELDS: tuple[tuple[str, int], ...] = (
    ("label", 16),
    ("transducer_type", 80),
    ("physical_dimension", 8),
    ("physical_minimum", 8),
    ("physical_maximum", 8),
    ("digital_minimum", 8),
    ("digital_maximum", 8),
    ("prefiltering", 80),
    ("samples_per_record", 8),
    ("reserved", 32),
)

EDF_ANNOTATION_LABEL = "EDF Annotations"

MONTH_ABBREVIATIONS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "APR": 4,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "OCT": 10,
    "NOV": 11,
    "DEC": 12,
}

# Two-digit years below the pivot are 20xx, the rest 19xx
EDF_YEAR_PIVOT = 80

# ============================================================================
# ResMed SD Card Layout
# ============================================================================

SUMMARY_FILE_NAME = "STR.edf"
DATALOG_DIR_NAME = "DATALOG"
IDENTIFICATION_TGT = "Identification.tgt"
IDENTIFICATION_JSON = "Identification.json"

SESSION_ID_FORMAT = "%Y%m%d_%H%M%S"
SESSION_FILE_PATTERN = r"^(\d{8}_\d{6})_([A-Z0-9]{2,5})\.edf$"
DATE_DIR_PATTERN = r"^\d{8}$"

FILE_TYPE_BRP = "BRP"  # Breathing waveforms (flow, pressure)
FILE_TYPE_PLD = "PLD"  # Pressure/leak low-rate data
FILE_TYPE_SAD = "SAD"  # Oximetry (S9)
FILE_TYPE_SA2 = "SA2"  # Oximetry (AirSense)
FILE_TYPE_EVE = "EVE"  # Events
FILE_TYPE_CSL = "CSL"  # Session log

# Sub-file whose header determines session duration
SESSION_DURATION_FILE_TYPE = FILE_TYPE_BRP

# ============================================================================
# Daily Summary Fields
# ============================================================================

# Ordered label candidates per normalized field. The first label present with
# a non-zero value wins. Overridable from the [aliases] config table.
SUMMARY_FIELD_ALIASES: dict[str, list[str]] = {
    "ahi": ["AHI"],
    "ai": ["AI"],
    "hi": ["HI"],
    "oai": ["OAI"],
    "cai": ["CAI"],
    "uai": ["UAI"],
    "duration": ["Duration"],
    "on_duration": ["OnDuration"],
    "patient_hours_cumulative": ["PatientHours"],
    "leak_50": ["Leak.50"],
    "leak_95": ["Leak.95"],
    "leak_max": ["Leak.Max"],
    "mask_press_50": ["MaskPress.50"],
    "mask_press_95": ["MaskPress.95"],
    "resp_rate_50": ["RespRate.50"],
    "resp_rate_95": ["RespRate.95"],
    "tid_vol_50": ["TidVol.50"],
    "tid_vol_95": ["TidVol.95"],
    "min_vent_50": ["MinVent.50"],
    "min_vent_95": ["MinVent.95"],
    "csr": ["CSR"],
    "rin": ["RIN"],
    "mode": ["Mode"],
    "pressure": ["S.C.Press", "S.AS.MinPress"],
    "max_pressure": ["S.AS.MaxPress", "S.C.Press"],
    "epr_level": ["S.EPR.Level"],
    "mask_on": ["MaskOn"],
    "mask_off": ["MaskOff"],
    "spo2_avg": ["SpO2.Avg", "SpO2Avg", "SpO2.50"],
    "spo2_min": ["SpO2.Min", "SpO2Min"],
    "spo2_max": ["SpO2.Max", "SpO2Max"],
    "pulse_avg": ["Pulse.Avg", "PulseAvg", "Pulse.50"],
    "pulse_min": ["Pulse.Min", "PulseMin"],
    "pulse_max": ["Pulse.Max", "PulseMax"],
}

# ============================================================================
# Default Settings
# ============================================================================

APP_NAME = "cpap-edf"
DEFAULT_APP_DIR = Path.home() / ".cpap-edf"
CONFIG_ENV_VAR = "CPAP_EDF_CONFIG"
DEFAULT_CONFIG_FILE = DEFAULT_APP_DIR / "config.toml"

# Logging configuration
LOG_DIR_ENV_VAR = "CPAP_EDF_LOG_DIR"
DEFAULT_LOG_DIR = DEFAULT_APP_DIR / "logs"
DEFAULT_LOG_FILE = "cpap-edf.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = "DEBUG"
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Sessions starting before this hour belong to the previous night
DEFAULT_DAY_START_HOUR = 12
DEFAULT_DAY_END_HOUR = 12

# Summary/CLI display defaults
DEFAULT_RECENT_DAYS = 30
DEFAULT_MAX_SESSIONS = 50
DEFAULT_LIST_SESSIONS_LIMIT = 20
DEFAULT_BATCH_WORKERS = 4

# Time calculations
SECONDS_PER_MINUTE = 60
MINUTES_PER_HOUR = 60
