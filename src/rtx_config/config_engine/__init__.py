"""Config Engine - Declarative configuration management for Yamaha RTX routers.

The Config Engine turns raw ``show config`` text into typed records and back:
- Rebuild logical lines from terminal-wrapped output
- Partition lines into top-level and selection-context buckets
- Decode and encode per-feature records
- Reconcile desired records against what the router reports
- Generate, preview and execute command batches

Usage:
    from rtx_config.config_engine import ConfigEngine

    engine = ConfigEngine()
    result = await engine.apply_config(executor, {
        "device": "rtx1210-office",
        "records": {
            "ip_filter": [
                {"number": 100, "action": "pass", "source": "*",
                 "destination": "192.168.1.0/24", "protocol": "tcp",
                 "dest_port": "www"},
            ],
        },
    }, dry_run=True)
"""

from .engine import ConfigEngine
from .errors import (
    ConfigEngineError,
    ValidationError,
    ScopedDecodeError,
    ReconstructionAmbiguity,
)
from .schema import (
    DesiredState,
    ValidationResult,
    DiffResult,
    RecordChange,
    ChangeType,
    CommandPlan,
    ExecuteOptions,
    ExecuteResult,
)
from .parser import ConfigParser, ParseError, compute_checksum, load_file
from .validator import ConfigValidator
from .diff import DiffEngine, summarize_diff
from .generator import CommandGenerator
from .executor import ConfigExecutor
from .reconcile import MatchKind, RecordMatch, ReconcileResult, ReconciliationEngine
from .scanner import ContextKey, ContextKind, Stanza, StanzaScanner
from .wrap import JoinDecision, LineWrapReconstructor, ReconstructedText, reconstruct_lines
from .features import FEATURES, DecodeResult, Intent, get_codec, codec_for

__all__ = [
    # Main engine
    "ConfigEngine",
    # Errors
    "ConfigEngineError",
    "ValidationError",
    "ScopedDecodeError",
    "ReconstructionAmbiguity",
    # Schema classes
    "DesiredState",
    "ValidationResult",
    "DiffResult",
    "RecordChange",
    "ChangeType",
    "CommandPlan",
    "ExecuteOptions",
    "ExecuteResult",
    # Parser
    "ConfigParser",
    "ParseError",
    "compute_checksum",
    "load_file",
    # Text handling
    "JoinDecision",
    "LineWrapReconstructor",
    "ReconstructedText",
    "reconstruct_lines",
    "ContextKey",
    "ContextKind",
    "Stanza",
    "StanzaScanner",
    # Features
    "FEATURES",
    "DecodeResult",
    "Intent",
    "get_codec",
    "codec_for",
    # Components (for advanced use)
    "ConfigValidator",
    "DiffEngine",
    "summarize_diff",
    "CommandGenerator",
    "ConfigExecutor",
    "MatchKind",
    "RecordMatch",
    "ReconcileResult",
    "ReconciliationEngine",
]
