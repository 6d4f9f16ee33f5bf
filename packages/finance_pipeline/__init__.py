"""Public interface for the ``finance_pipeline`` package.

Symbol re-exports only; see ``finance_pipeline.api`` for the functions and
``finance_pipeline.models`` for the record types.
"""

from .api import (
    apply_category_rules,
    assign_tag,
    auto_tag,
    compare_periods,
    compute_period_stats,
    compute_transaction_id,
    detect_flow_tag,
    import_file,
    import_text,
    load_transactions,
    merge_transactions,
    normalize_row,
    normalize_rows,
    parse_amount_cents,
    parse_csv,
    parse_date,
    parse_json,
    parse_text,
    report,
    review_untagged,
)
from .errors import FormatError, MergeConflictImpossible, ParseError, PipelineError, StorageError
from .models import (
    CategoryRule,
    MergeResult,
    NormalizedRow,
    Period,
    PeriodComparison,
    PeriodStats,
    PeriodSummary,
    Transaction,
    UploadInfo,
)
from .store import TransactionStore

__all__ = [
    # API
    "parse_csv",
    "parse_json",
    "parse_text",
    "parse_date",
    "parse_amount_cents",
    "normalize_row",
    "normalize_rows",
    "compute_transaction_id",
    "merge_transactions",
    "detect_flow_tag",
    "apply_category_rules",
    "assign_tag",
    "auto_tag",
    "compute_period_stats",
    "compare_periods",
    "import_text",
    "import_file",
    "review_untagged",
    "load_transactions",
    "report",
    "TransactionStore",
    # Models
    "Transaction",
    "CategoryRule",
    "NormalizedRow",
    "MergeResult",
    "Period",
    "PeriodStats",
    "PeriodSummary",
    "PeriodComparison",
    "UploadInfo",
    # Errors
    "PipelineError",
    "ParseError",
    "FormatError",
    "MergeConflictImpossible",
    "StorageError",
]
