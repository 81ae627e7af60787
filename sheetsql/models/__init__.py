"""Domain models for the workbook structure-recovery pipeline."""

from .cell import CellKind, Grid, cell_at, cell_kind, is_empty, numeric_value
from .classification import ClassificationResult, SheetType
from .column import ColumnInfo, StorageType
from .config_models import DatabaseConfig, HeuristicsConfig, IngestConfig
from .detection import HeaderDetectionResult, RowScore
from .matrix import AggregateAnalysis, AggregateInfo, NormalizedMatrix
from .schema import ProcessedWorkbook, Relationship, SchemaInfo, TableSchema
from .sheet import ProcessedSheet

__all__ = [
    # Cells
    "CellKind",
    "Grid",
    "cell_at",
    "cell_kind",
    "is_empty",
    "numeric_value",
    # Columns / detection
    "ColumnInfo",
    "StorageType",
    "HeaderDetectionResult",
    "RowScore",
    "ClassificationResult",
    "SheetType",
    # Matrix
    "AggregateAnalysis",
    "AggregateInfo",
    "NormalizedMatrix",
    # Sheets / schema
    "ProcessedSheet",
    "ProcessedWorkbook",
    "Relationship",
    "SchemaInfo",
    "TableSchema",
    # Configuration
    "DatabaseConfig",
    "HeuristicsConfig",
    "IngestConfig",
]
