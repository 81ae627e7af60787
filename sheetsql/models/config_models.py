from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the ingestion pipeline.

HeuristicsConfig collects every empirically chosen constant of the structure
recovery heuristics so they can be tuned per deployment from the YAML config
rather than edited in code. Defaults are the tuned values.
"""


@dataclass(frozen=True)
class HeuristicsConfig:
    """Scoring weights' scale factors, thresholds and sample sizes."""
    # Header locator
    header_scan_rows: int = 25
    header_sample_rows: int = 100
    header_confidence_scale: int = 25
    # Column type inference
    type_sample_size: int = 20
    nullable_sample_rows: int = 50
    type_ratio_threshold: float = 0.7
    # Sheet classifier
    matrix_scan_rows: int = 10
    matrix_threshold: int = 60
    table_threshold: int = 10
    section_scan_rows: int = 20
    numeric_sample_rows: int = 10
    # Aggregate analyzer
    aggregate_sample_rows: int = 20
    aggregate_min_support: float = 0.8
    aggregate_abs_tolerance: float = 0.01
    aggregate_rel_tolerance: float = 1e-4
    analyzer_timeout_seconds: float = 5.0
    # Output
    preview_rows: int = 100


@dataclass(frozen=True)
class DatabaseConfig:
    """Query engine connection fallback.

    Environment variables (DATABASE_URL / PGDSN / PGHOST ...) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class IngestConfig:
    """Root configuration object."""
    heuristics: HeuristicsConfig = field(default_factory=HeuristicsConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    error_log_dir: str = "logs"
    session_ttl_seconds: int = 1800
