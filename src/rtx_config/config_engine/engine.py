"""Main Config Engine - orchestrates the full apply_config workflow.

Provides a single entry point for:
1. Rebuilding logical lines from wrapped device output
2. Decoding feature records from those lines
3. Reconciling desired records against decoded ones
4. Generating command batches
5. Executing with error handling
"""
import logging
from typing import Any, Iterable, Optional

from ..config.settings import EngineSettings
from ..devices.base import Executor
from ..utils.audit_log import setup_audit_logging
from ..utils.logging_config import timed, timed_section, timed_stage
from .errors import ConfigEngineError, ValidationError
from .features import FEATURES, DecodeResult, Intent, codec_for, get_codec
from .schema import (
    DesiredState,
    ValidationResult,
    DiffResult,
    CommandPlan,
    ExecuteOptions,
    ExecuteResult,
)
from .parser import ConfigParser, ParseError
from .validator import ConfigValidator
from .diff import DiffEngine, summarize_diff
from .generator import CommandGenerator
from .executor import ConfigExecutor
from .reconcile import ReconcileResult, ReconciliationEngine
from .scanner import Stanza, StanzaScanner
from .wrap import LineWrapReconstructor, ReconstructedText

logger = logging.getLogger(__name__)


class ConfigEngine:
    """
    Main Config Engine for RTX router configurations.

    Usage:
        engine = ConfigEngine(load_settings())
        filters = engine.decode("ip_filter", show_config_output)
        result = await engine.apply_config(executor, config_dict, dry_run=True)
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        """
        Initialize the Config Engine.

        Args:
            settings: Engine settings (defaults when omitted)
        """
        self.settings = settings or EngineSettings()
        self.reconstructor = LineWrapReconstructor(self.settings.wrap_policies())
        self.scanner = StanzaScanner(self.settings.context_kinds())
        self.parser = ConfigParser()
        self.validator = ConfigValidator()
        self.diff_engine = DiffEngine()
        self.generator = CommandGenerator()
        self.executor = ConfigExecutor(self.generator)

        if self.settings.audit_log_dir:
            setup_audit_logging(self.settings.audit_log_dir)

    # --- Read side ---

    def reconstruct(self, raw: str) -> ReconstructedText:
        """Rebuild logical lines from raw device output."""
        return self.reconstructor.reconstruct(raw)

    def scan(self, raw: str) -> Stanza:
        """Reconstruct and partition raw output into top-level and context lines."""
        return self.scanner.scan(self.reconstruct(raw).lines)

    def decode(self, feature: str, raw: str) -> DecodeResult:
        """
        Decode one feature's records from raw device output.

        Malformed lines never abort the decode; they come back in
        DecodeResult.errors next to every record that did parse.
        """
        with timed_stage("decode", feature=feature) as ctx:
            result = get_codec(feature).decode(self.scan(raw))
            ctx["records"] = len(result.records)
            ctx["errors"] = len(result.errors)
        return result

    def decode_all(
        self,
        raw: str,
        features: Optional[Iterable[str]] = None,
    ) -> dict[str, DecodeResult]:
        """Decode several features from one read, scanning once."""
        stanza = self.scan(raw)
        names = list(features) if features is not None else list(FEATURES)
        decoded = {}
        for name in names:
            with timed_stage("decode", feature=name) as ctx:
                decoded[name] = get_codec(name).decode(stanza)
                ctx["records"] = len(decoded[name].records)
                ctx["errors"] = len(decoded[name].errors)
        return decoded

    # --- Write side ---

    def encode(
        self,
        record: Any,
        intent: Intent = Intent.CREATE,
        observed: Optional[Any] = None,
    ) -> list[str]:
        """
        Encode one record into router commands.

        Raises:
            ValidationError: If a create/update record is invalid
        """
        return codec_for(record).encode(record, intent, observed=observed)

    def reconcile(
        self,
        feature: str,
        desired: list[Any],
        observed: list[Any],
    ) -> ReconcileResult:
        """Match desired records to observed ones for one feature."""
        return ReconciliationEngine(get_codec(feature)).reconcile(desired, observed)

    @timed("plan")
    def plan(self, desired: DesiredState, observed_raw: str) -> tuple[DiffResult, CommandPlan]:
        """
        Diff a desired state against a raw config read and build commands.

        Only features present in the desired state are touched.

        Raises:
            ValidationError: If a desired record cannot be encoded
        """
        decoded = self.decode_all(observed_raw, [f for f in FEATURES if f in desired.records])

        reconciled = []
        decode_errors = []
        for feature, result in decoded.items():
            decode_errors.extend(result.errors)
            with timed_stage("reconcile", feature=feature) as ctx:
                matched = self.reconcile(feature, desired.records[feature], result.records)
                ctx["desired"] = len(desired.records[feature])
                ctx["observed"] = len(result.records)
                ctx["ghosts"] = len(matched.ghosts)
            reconciled.append(matched)

        diff = self.diff_engine.calculate_all(reconciled, desired.mode)
        diff.decode_errors = decode_errors

        plan = self.generator.generate(diff, save_config=self.settings.save_config)
        return diff, plan

    # --- Device workflow ---

    async def read_raw(self, executor: Executor) -> str:
        """Fetch the full configuration text."""
        async with timed_section("read_config", device_id=executor.device_id):
            output, error = await executor.execute("show config")
        if error:
            raise ConfigEngineError(f"show config failed on {executor.device_id}: {error}")
        return output

    async def read(self, executor: Executor, feature: str) -> DecodeResult:
        """
        Read and decode one feature from a router.

        Raises:
            ConfigEngineError: If the show command fails
        """
        codec = get_codec(feature)
        async with timed_section("read", device_id=executor.device_id, feature=feature):
            output, error = await executor.execute(codec.show_command())
        if error:
            raise ConfigEngineError(f"{codec.show_command()} failed on {executor.device_id}: {error}")
        return self.decode(feature, output)

    async def apply_config(
        self,
        executor: Executor,
        config: dict[str, Any],
        dry_run: bool = False,
        audit_context: str = "",
        user: Optional[str] = None,
    ) -> ExecuteResult:
        """
        Apply a desired state configuration to a router.

        This is the main entry point. It:
        1. Parses the config into DesiredState
        2. Validates for logical errors
        3. Reads and decodes the current configuration
        4. Reconciles and generates command batches
        5. Executes (or dry-runs) the changes

        Args:
            executor: Command executor for the target router
            config: Desired state configuration dict
            dry_run: If True, preview changes without applying
            audit_context: Description for audit log
            user: User identifier for audit log

        Returns:
            ExecuteResult with success/failure and details
        """
        result = ExecuteResult(dry_run=dry_run)

        # Step 1: Parse
        logger.info("Parsing desired state configuration")
        try:
            desired = self.parse(config)
        except ParseError as e:
            result.error = f"Parse error: {e}"
            return result

        # Step 2: Validate
        logger.info(f"Validating configuration for device {desired.device_id}")
        validation = self.validate(desired)

        if not validation.valid:
            result.error = f"Validation failed: {'; '.join(validation.errors)}"
            result.error_context = "\n".join(validation.errors)
            return result

        result.warnings.extend(validation.warnings)

        # Step 3: Read current state
        logger.info("Reading current configuration")
        try:
            observed_raw = await self.read_raw(executor)
        except Exception as e:
            result.error = f"Failed to get current state: {e}"
            return result

        # Step 4: Diff and generate commands
        try:
            diff, plan = self.plan(desired, observed_raw)
        except ValidationError as e:
            result.error = f"Command generation failed: {e}"
            return result

        for err in diff.decode_errors:
            result.warnings.append(f"Unreadable line ({err.feature}): {err.line}")

        # Check if any changes needed
        if diff.no_change:
            result.success = True
            result.changes_made = ["No changes needed - state already matches"]
            return result

        logger.info(f"Found {diff.total_changes} changes to apply")
        logger.info(
            f"Generated {plan.total_commands} commands "
            f"({len(plan.pre_commands)} pre, {len(plan.main_commands)} main, "
            f"{len(plan.post_commands)} post)"
        )

        # Step 5: Execute
        options = ExecuteOptions(
            dry_run=dry_run,
            audit_context=audit_context,
            user=user,
            stop_on_error=self.settings.stop_on_error,
            rollback_on_error=self.settings.rollback_on_error,
        )

        logger.info(f"{'DRY RUN: ' if dry_run else ''}Executing command plan")
        executed = await self.executor.execute(executor, plan, diff, options)
        executed.warnings = result.warnings + executed.warnings

        return executed

    def parse(self, config: dict[str, Any]) -> DesiredState:
        """Parse config dict to DesiredState (for external use)."""
        desired = self.parser.parse(config)
        if "mode" not in config:
            desired.mode = self.settings.default_mode
        return desired

    def validate(self, desired: DesiredState) -> ValidationResult:
        """Validate a DesiredState (for external use)."""
        return self.validator.validate(desired)

    async def preview(self, executor: Executor, config: dict[str, Any]) -> str:
        """
        Preview changes without applying.

        Returns human-readable diff summary followed by the commands.
        """
        # Parse and validate
        desired = self.parse(config)
        validation = self.validate(desired)

        if not validation.valid:
            return "Validation failed:\n" + "\n".join(validation.errors)

        # Calculate diff
        observed_raw = await self.read_raw(executor)
        diff, plan = self.plan(desired, observed_raw)

        # Generate summary
        summary = summarize_diff(diff)

        if not diff.no_change:
            commands = plan.main_commands + plan.post_commands
            summary += "\n\nCommands:\n" + "\n".join(f"  {cmd}" for cmd in commands)

        # Add warnings
        if validation.warnings:
            summary += "\n\nWarnings:\n" + "\n".join(
                f"  - {w}" for w in validation.warnings
            )

        return summary
