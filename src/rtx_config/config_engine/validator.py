"""Pre-flight validation for desired state configurations.

Catches record errors before any router communication.
"""
from collections import Counter

from .features import FEATURES, get_codec
from .schema import (
    DesiredState,
    ValidationResult,
)

LARGE_CHANGE_SET = 50


class ConfigValidator:
    """Validate desired state for logical errors before execution."""

    def validate(self, desired: DesiredState) -> ValidationResult:
        """
        Validate a desired state configuration.

        Performs pre-flight checks:
        - Known feature names
        - Per-record feature validation
        - Duplicate identities within a feature
        - Checksum verification
        - Change set size and full mode warnings

        Args:
            desired: The desired state to validate

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        self._validate_records(desired, errors)
        self._check_duplicates(desired, errors)
        self._verify_checksum(desired, errors)
        self._check_change_size(desired, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_records(self, desired: DesiredState, errors: list[str]) -> None:
        """Run each feature's own record validation."""
        for feature, records in desired.records.items():
            if feature not in FEATURES:
                errors.append(f"Unknown feature: {feature}")
                continue
            codec = get_codec(feature)
            for record in records:
                for message in codec.validate(record):
                    errors.append(f"{feature} {codec.identity(record)}: {message}")

    def _check_duplicates(self, desired: DesiredState, errors: list[str]) -> None:
        """A feature must not list the same identity twice."""
        for feature, records in desired.records.items():
            if feature not in FEATURES:
                continue
            codec = get_codec(feature)
            counts = Counter(codec.identity(r) for r in records)
            for key, count in counts.items():
                if count > 1:
                    errors.append(f"{feature} {key} defined {count} times")

    def _verify_checksum(self, desired: DesiredState, errors: list[str]) -> None:
        """Verify config checksum if provided."""
        expected = desired.source_checksum
        if not desired.checksum or not expected:
            return
        if desired.checksum != expected:
            errors.append(
                f"Checksum mismatch: config says {desired.checksum}, content is {expected}"
            )

    def _check_change_size(self, desired: DesiredState, warnings: list[str]) -> None:
        """Warn about large change sets and destructive mode."""
        total = desired.total_records
        if total > LARGE_CHANGE_SET:
            warnings.append(
                f"Large change set ({total} records) - consider staging"
            )
        if desired.mode == "full":
            features = ", ".join(sorted(desired.records)) or "none"
            warnings.append(
                f"Full mode: entries not listed will be deleted for features: {features}"
            )
