"""Inference-backed extraction for files the column heuristics cannot read.

The pipeline sends one description of the sheet per attempt, retries
transient failures with exponential backoff and, when the service is out
of quota or answers with something unusable, falls back to
:func:`~shift_dimensioning.degraded.degraded_extraction`.
"""
from __future__ import annotations

import json
import logging
import numbers
import re
import time
from datetime import date, datetime
from datetime import time as clock_time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .config import Settings
from .degraded import degraded_extraction
from .errors import InferenceError, InferenceErrorKind
from .extractor import CUTOFF_DAY, cell_text, fold, resolve_period
from .inference_client import GeminiClient, InferenceClient
from .models import DimensioningPeriod, KeyedRows, PositionalRows, RowShape, StructuredExtraction
from .recovery import extract_json_block, loads_lenient
from .timeparse import month_name

logger = logging.getLogger(__name__)

MAX_SAMPLE_ROWS = 15
MAX_SAMPLE_VALUES = 5

TOP_LEVEL_ALIASES = {
    "periods": ("periods", "periodos"),
    "shifts": ("shifts", "turnos"),
    "coveredDates": ("coveredDates", "fechasCubiertas", "covered_dates"),
    "statistics": ("statistics", "estadisticas", "estadísticas"),
}

PERIOD_ALIASES = {
    "month": ("month", "mes"),
    "year": ("year", "anio", "año"),
    "monthName": ("monthName", "nombreMes", "month_name"),
}

SHIFT_FIELD_ALIASES = {
    "agent": ("agent", "asesor", "agentName", "nombre", "nombreAsesor"),
    "supervisor": ("supervisor", "lider"),
    "skill": ("skill",),
    "date": ("date", "fecha"),
    "dayType": ("dayType", "tipoDia", "tipo_dia", "day_type"),
    "start": ("start", "inicio", "horaInicio"),
    "end": ("end", "fin", "horaFin"),
    "motive": ("motive", "motivo"),
}

_DATE_HEADER_PATTERNS = (
    re.compile(r"^\d{1,2}/\d{1,2}(/\d{2,4})?$"),
    re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"),
    re.compile(r"^(lunes|martes|miercoles|jueves|viernes|sabado|domingo)"),
    re.compile(r"^(enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|octubre|noviembre|diciembre)"),
    re.compile(r"\d{1,2}\s*(de)?\s*(enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|octubre|noviembre|diciembre)"),
    re.compile(r"^inicio\s+jornada"),
    re.compile(r"^fin\s+jornada"),
    re.compile(r"^horas\s+computadas"),
)

_SPECIAL_COLUMNS = (
    ("id", re.compile(r"^(dni|documento|id\s*personal|avaya|id\s*avaya|id\s*asesor|id)\b")),
    ("name", re.compile(r"^(nombre|asesor|agent|name)")),
    ("skill", re.compile(r"^(skill|hab.*idad|grupo)")),
    ("supervisor", re.compile(r"^(lider|supervisor|leader)")),
    ("vacation_start", re.compile(r"^(inicio.*vac|vac.*inicio)")),
    ("vacation_end", re.compile(r"^(fin.*vac|vac.*fin)")),
)

_TIME_VALUE_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?(\s*(a|to|hasta)\s*\d{1,2}:\d{2}(:\d{2})?)?$")
_DATE_VALUE_RE = re.compile(r"^(\d{1,2}/\d{1,2}(/\d{2,4})?|\d{4}-\d{1,2}-\d{1,2})$")


class PipelineState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"


StateHistory = List[Tuple[PipelineState, int]]


# ---------------------------------------------------------------------------
# Row shapes
# ---------------------------------------------------------------------------


def resolve_row_shape(rows: Any) -> RowShape:
    """Decide once whether rows are addressed by position or by key.

    Accepts an existing row shape, a DataFrame (its columns become the
    header), a list of dicts or a list of sequences whose first entry is
    the header row.
    """

    if isinstance(rows, (PositionalRows, KeyedRows)):
        return rows
    if isinstance(rows, pd.DataFrame):
        return PositionalRows(
            header=tuple(cell_text(column) for column in rows.columns),
            rows=tuple(tuple(row) for row in rows.to_numpy(dtype=object).tolist()),
        )
    rows = list(rows or [])
    if not rows:
        return PositionalRows(header=(), rows=())
    if all(isinstance(row, dict) for row in rows):
        return KeyedRows(rows=tuple(rows))
    if all(isinstance(row, (list, tuple)) for row in rows):
        return PositionalRows(header=tuple(rows[0]), rows=tuple(tuple(row) for row in rows[1:]))
    raise TypeError("Rows must be all mappings or all sequences")


def _row_values(shape: RowShape) -> List[List[Any]]:
    if isinstance(shape, KeyedRows):
        keys = shape.headers
        return [[row.get(key) for key in keys] for row in shape.rows]
    return [list(row) for row in shape.rows]


# ---------------------------------------------------------------------------
# Sheet description
# ---------------------------------------------------------------------------


def _value_kind(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        return "text"
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return "date"
    if isinstance(value, clock_time):
        return "time"
    if isinstance(value, numbers.Real):
        return None if pd.isna(value) else "numeric"
    text = str(value).strip().lower()
    if _TIME_VALUE_RE.match(text):
        return "time"
    if _DATE_VALUE_RE.match(text):
        return "date"
    return "text"


def _column_kind(values: Sequence[Any]) -> Tuple[str, float]:
    counts = {"text": 0, "numeric": 0, "date": 0, "time": 0}
    empty = 0
    for value in values:
        kind = _value_kind(value)
        if kind is None:
            empty += 1
        else:
            counts[kind] += 1
    empty_rate = empty / len(values) if values else 1.0
    best = max(counts.values())
    if best == 0:
        return "unknown", empty_rate
    # ties resolve in this order
    for kind in ("text", "numeric", "date", "time"):
        if counts[kind] == best:
            return kind, empty_rate
    return "unknown", empty_rate


def _special_kind(header: str) -> Optional[str]:
    folded = fold(header)
    for kind, pattern in _SPECIAL_COLUMNS:
        if pattern.search(folded):
            return kind
    return None


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if isinstance(value, float):
        return None if pd.isna(value) else value
    if isinstance(value, (datetime, date, clock_time, pd.Timestamp)):
        return value.isoformat()
    return cell_text(value)


def describe_rows(rows: RowShape) -> Dict[str, Any]:
    """Summarise a sheet for the prompt: headers, samples and column profiles."""

    headers = rows.headers
    values = _row_values(rows)
    width = max([len(headers)] + [len(row) for row in values]) if (headers or values) else 0
    headers = headers + [f"Column{index + 1}" for index in range(len(headers), width)]
    headers = [header or f"Column{index + 1}" for index, header in enumerate(headers)]
    sample = values[:MAX_SAMPLE_ROWS]

    date_columns = [
        index
        for index, header in enumerate(headers)
        if any(pattern.search(fold(header)) for pattern in _DATE_HEADER_PATTERNS)
    ]

    columns = []
    for index, header in enumerate(headers):
        column_values = [row[index] if index < len(row) else None for row in sample]
        kind, empty_rate = _column_kind(column_values)
        present = [value for value in column_values if _value_kind(value) is not None]
        columns.append(
            {
                "header": header,
                "index": index,
                "type": kind,
                "special": _special_kind(header),
                "possibleDate": index in date_columns,
                "emptyRate": round(empty_rate, 3),
                "samples": [_jsonable(value) for value in present[:MAX_SAMPLE_VALUES]],
            }
        )

    return {
        "headers": headers,
        "rowCount": len(values),
        "columnCount": width,
        "possibleDateColumns": date_columns,
        "columns": columns,
        "sampleRows": [[_jsonable(value) for value in row] for row in sample],
    }


PROMPT_TEMPLATE = """You are an expert analyst of call-center dimensioning data. Process a file that \
contains agent shift schedules. The file is named "{filename}"{period_hint}.

FILE FORMAT:
A CSV/Excel export whose main columns are:
- agent: agent full name
- supervisor: supervisor full name
- skill: agent skill (usually 860 or 861)
- date: shift date in any common format (YYYY-MM-DD, DD/MM/YYYY, ...)
- day type: business day, Saturday, Sunday, ...
- start: shift start time (HH:MM, H:MM, ...)
- end: shift end time
- motive: shift reason (usually "jornada normal" or an exception)

INSTRUCTIONS:
1. Excel files may have several sheets; look for "Dias Habiles" and "Dias No Habiles" (or variants).
2. Only include shifts whose motive is "jornada normal".
3. Only include shifts from day {cutoff_day} of the month onwards.
4. Normalise day types as "Holiday" for business days, "Saturday" and "Sunday".
5. Keep dates and times in any recognisable format; they are normalised afterwards.

Reply with JSON only, using this structure:
{{
  "periods": [{{"month": <number>, "year": <number>, "monthName": "<name>"}}],
  "shifts": [{{"agent": "", "supervisor": "", "skill": "", "date": "", "dayType": "",
              "start": "", "end": "", "shift": "<start> a <end>", "motive": "jornada normal"}}],
  "coveredDates": [{{"date": "", "dayType": ""}}],
  "statistics": {{"totalAgents": <number>, "totalShifts": <number>,
                  "validShifts": <number>, "invalidShifts": <number>}}
}}

Data to analyse:
{description}"""


def build_prompt(
    description: Dict[str, Any],
    filename: Optional[str],
    period: Optional[DimensioningPeriod] = None,
    cutoff_day: int = CUTOFF_DAY,
) -> str:
    period_hint = f" and appears to cover {period.month_name} {period.year}" if period else ""
    return PROMPT_TEMPLATE.format(
        filename=filename or "unnamed",
        period_hint=period_hint,
        cutoff_day=cutoff_day,
        description=json.dumps(description, ensure_ascii=False, indent=2),
    )


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------


def parse_response(text: str) -> Dict[str, Any]:
    """Decode the model's answer; raises ``ValueError`` when nothing usable is found."""

    block = extract_json_block(text or "")
    if block is None:
        raise ValueError("No JSON object in response")
    payload = loads_lenient(block)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _pick(mapping: Dict[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        if alias in mapping:
            return mapping[alias]
    return None


def shift_value(shift: Dict[str, Any], field: str) -> Any:
    """Read ``field`` from a shift dict written with either English or Spanish keys."""

    return _pick(shift, SHIFT_FIELD_ALIASES[field])


def _shape_period(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    try:
        month = int(_pick(raw, PERIOD_ALIASES["month"]))
        year = int(_pick(raw, PERIOD_ALIASES["year"]))
    except (TypeError, ValueError):
        return None
    if not 1 <= month <= 12:
        return None
    name = _pick(raw, PERIOD_ALIASES["monthName"]) or month_name(month)
    return {"month": month, "year": year, "monthName": name}


def ensure_shape(payload: Any, default_period: Optional[DimensioningPeriod] = None) -> Dict[str, Any]:
    """Guarantee the four top-level keys with safe defaults.

    ``periods`` is never empty: it falls back to ``default_period`` or the
    current month.
    """

    payload = payload if isinstance(payload, dict) else {}
    shaped: Dict[str, Any] = {}
    for key, aliases in TOP_LEVEL_ALIASES.items():
        shaped[key] = _pick(payload, aliases)

    periods = [p for p in (_shape_period(raw) for raw in shaped["periods"] or []) if p]
    if not periods:
        fallback = default_period or resolve_period(None)
        periods = [{"month": fallback.month, "year": fallback.year, "monthName": fallback.month_name}]
    shaped["periods"] = periods

    shifts = shaped["shifts"]
    shaped["shifts"] = [s for s in shifts if isinstance(s, dict)] if isinstance(shifts, list) else []

    covered = shaped["coveredDates"]
    shaped["coveredDates"] = [c for c in covered if isinstance(c, dict)] if isinstance(covered, list) else []

    statistics = shaped["statistics"]
    if not isinstance(statistics, dict):
        statistics = {"totalAgents": 0, "totalShifts": len(shaped["shifts"])}
    shaped["statistics"] = statistics
    return shaped


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class InferencePipeline:
    """Bounded-retry extraction through an injected inference client.

    Holds configuration only. Each :meth:`extract` call keeps its own
    state history and hands it back on the result or on the raised
    :class:`InferenceError`.
    """

    def __init__(
        self,
        client: InferenceClient,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        timeout: float = 30.0,
        *,
        cutoff_day: int = CUTOFF_DAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self.cutoff_day = cutoff_day
        self.sleep = sleep

    def backoff(self, attempt: int) -> float:
        return self.base_delay * 2 ** (attempt - 1)

    def _call(self, prompt: str) -> str:
        try:
            return self.client.generate(prompt, self.timeout)
        except (TimeoutError, ConnectionError) as exc:
            raise InferenceError(InferenceErrorKind.TRANSIENT, str(exc) or type(exc).__name__) from exc

    def _degrade(
        self,
        shape: RowShape,
        filename: Optional[str],
        period: DimensioningPeriod,
        history: StateHistory,
        attempt: int,
        reason: str,
    ) -> StructuredExtraction:
        history.append((PipelineState.DEGRADED, attempt))
        result = degraded_extraction(shape, filename, period, reason=reason, cutoff_day=self.cutoff_day)
        result.attempts = attempt
        result.history = history
        return result

    def extract(
        self,
        rows: Any,
        filename: Optional[str] = None,
        period: Optional[DimensioningPeriod] = None,
    ) -> StructuredExtraction:
        shape = resolve_row_shape(rows)
        period = period or resolve_period(filename)
        history: StateHistory = [(PipelineState.IDLE, 0)]

        prompt = build_prompt(describe_rows(shape), filename, period, self.cutoff_day)

        attempt = 0
        while True:
            attempt += 1
            history.append((PipelineState.ATTEMPTING, attempt))
            logger.info("Inference attempt %d/%d for %s", attempt, self.max_attempts, filename or "<workbook>")
            try:
                text = self._call(prompt)
            except InferenceError as exc:
                if exc.kind is InferenceErrorKind.QUOTA:
                    logger.warning("Inference quota exhausted; degrading without retry")
                    return self._degrade(shape, filename, period, history, attempt, "inference quota exceeded")
                if exc.kind is InferenceErrorKind.TERMINAL:
                    history.append((PipelineState.FAILED, attempt))
                    exc.history = history
                    logger.error("Inference failed permanently: %s", exc)
                    raise
                if attempt >= self.max_attempts:
                    history.append((PipelineState.FAILED, attempt))
                    logger.error("Inference failed after %d attempt(s): %s", attempt, exc)
                    raise InferenceError(
                        InferenceErrorKind.TRANSIENT,
                        f"Gave up after {attempt} attempt(s): {exc}",
                        status_code=exc.status_code,
                        history=history,
                    ) from exc
                delay = self.backoff(attempt)
                history.append((PipelineState.RETRYING, attempt + 1))
                logger.warning("Transient inference error (%s); retrying in %.1fs", exc, delay)
                self.sleep(delay)
                continue

            try:
                payload = parse_response(text)
            except ValueError as exc:
                logger.warning("Unusable inference response: %s", exc)
                return self._degrade(shape, filename, period, history, attempt, "unparseable inference response")

            shaped = ensure_shape(payload, period)
            history.append((PipelineState.SUCCESS, attempt))
            logger.info("Inference returned %d shift(s)", len(shaped["shifts"]))
            return StructuredExtraction(
                periods=shaped["periods"],
                shifts=shaped["shifts"],
                covered_dates=shaped["coveredDates"],
                statistics=shaped["statistics"],
                degraded=False,
                attempts=attempt,
                history=history,
            )


def build_pipeline(settings: Settings, session: Any = None) -> Optional[InferencePipeline]:
    """Wire a Gemini-backed pipeline from settings, or ``None`` without an API key."""

    if not settings.inference_enabled:
        logger.info("No inference API key configured; fallback pipeline disabled")
        return None
    client = GeminiClient(
        api_key=settings.inference_api_key,
        model=settings.inference_model,
        endpoint=settings.inference_endpoint,
        session=session,
    )
    return InferencePipeline(
        client,
        max_attempts=settings.inference_max_attempts,
        base_delay=settings.inference_backoff_base,
        timeout=settings.inference_timeout,
        cutoff_day=settings.cutoff_day,
    )
