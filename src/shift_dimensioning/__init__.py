"""Dimensioning-file ingestion and break scheduling."""
from .breaks import apply_override, schedule, schedule_all, shift_duration
from .config import Settings, load_settings
from .database import (
    configure,
    init_database,
    list_breaks_by_date,
    list_dates,
    list_ingested_files,
    list_shift_records,
    override_break,
    replace_snapshots,
)
from .distribution import break_cap, build_snapshots, occupancy_frame, validate
from .errors import (
    ErrorKind,
    InferenceError,
    InferenceErrorKind,
    IngestionError,
    IngestionIssue,
    NormalizationError,
)
from .extractor import extract, load_workbook
from .fallback import InferencePipeline, build_pipeline
from .inference_client import GeminiClient
from .ingestion import ingest
from .models import (
    BreakAssignment,
    BreakKind,
    DayKind,
    IngestionResult,
    ShiftRecord,
    ValidationVerdict,
    WorkforceSnapshot,
)
from .timeparse import normalize_date, normalize_time
from .utils import break_table, export_to_excel, verdict_table

__all__ = [
    "BreakAssignment",
    "BreakKind",
    "DayKind",
    "ErrorKind",
    "GeminiClient",
    "InferenceError",
    "InferenceErrorKind",
    "InferencePipeline",
    "IngestionError",
    "IngestionIssue",
    "IngestionResult",
    "NormalizationError",
    "Settings",
    "ShiftRecord",
    "ValidationVerdict",
    "WorkforceSnapshot",
    "apply_override",
    "break_cap",
    "break_table",
    "build_pipeline",
    "build_snapshots",
    "configure",
    "export_to_excel",
    "extract",
    "ingest",
    "init_database",
    "list_breaks_by_date",
    "list_dates",
    "list_ingested_files",
    "list_shift_records",
    "load_settings",
    "load_workbook",
    "normalize_date",
    "normalize_time",
    "occupancy_frame",
    "override_break",
    "replace_snapshots",
    "schedule",
    "schedule_all",
    "shift_duration",
    "validate",
    "verdict_table",
]
