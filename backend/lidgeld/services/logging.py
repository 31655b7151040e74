"""
Structured Logging Service

Provides membership-administration structured logging for key events:
- Bank statement parsed / rejected / normalized / imported
- Fee created / overlap detected / paid
- Fee generation run
- SEPA batch generated

Each log entry includes:
- timestamp
- event
- entity_type (import, fee, member, sepa, system)
- entity_id (if applicable)
- severity (INFO/WARN/ERROR)
"""
import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID


class LogSeverity(str, Enum):
    """Log severity levels."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogEntityType(str, Enum):
    """Entity types for structured logging."""
    IMPORT = "import"
    FEE = "fee"
    MEMBER = "member"
    SEPA = "sepa"
    SYSTEM = "system"


class StructuredLogger:
    """
    Structured logging service for membership-fee events.

    Logs are emitted in JSON format suitable for:
    - Application logs
    - Audit trail of imports and payment batches
    """

    def __init__(self, logger_name: str = "lidgeld"):
        self.logger = logging.getLogger(logger_name)
        self._ensure_handler()

    def _ensure_handler(self):
        """Ensure logger has a proper handler configured."""
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _serialize_value(self, value: Any) -> Any:
        """Serialize values json.dumps cannot handle."""
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (UUID, Decimal)):
            return str(value)
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(item) for item in value]
        return value

    def _create_log_entry(
        self,
        event: str,
        severity: LogSeverity,
        entity_type: LogEntityType,
        entity_id: Optional[str] = None,
        member_id: Optional[str] = None,
        message: Optional[str] = None,
        **extra
    ) -> dict:
        """Create a structured log entry."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "severity": severity.value,
            "entity_type": entity_type.value,
        }

        if entity_id:
            entry["entity_id"] = str(entity_id)
        if member_id:
            entry["member_id"] = str(member_id)
        if message:
            entry["message"] = message

        for key, value in extra.items():
            entry[key] = self._serialize_value(value)

        return entry

    def _log(self, entry: dict, severity: LogSeverity):
        """Emit the log entry at the appropriate level."""
        log_str = json.dumps(entry)
        if severity == LogSeverity.ERROR:
            self.logger.error(log_str)
        elif severity == LogSeverity.WARN:
            self.logger.warning(log_str)
        else:
            self.logger.info(log_str)

    # Import events
    def import_parsed(self, filename: str, file_type: str, row_count: int):
        """Log a successfully parsed statement file."""
        entry = self._create_log_entry(
            event="import.parsed",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.IMPORT,
            message=f"Statement parsed: {filename}",
            filename=filename,
            file_type=file_type,
            row_count=row_count,
        )
        self._log(entry, LogSeverity.INFO)

    def import_failed(self, filename: str, file_type: Optional[str], error: str):
        """Log a statement file that could not be parsed."""
        entry = self._create_log_entry(
            event="import.failed",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.IMPORT,
            message=f"Statement rejected: {filename}",
            filename=filename,
            file_type=file_type,
            error=error,
        )
        self._log(entry, LogSeverity.WARN)

    def import_normalized(self, file_type: str, total: int, flagged: int):
        """Log normalization of mapped rows."""
        severity = LogSeverity.WARN if flagged else LogSeverity.INFO
        entry = self._create_log_entry(
            event="import.normalized",
            severity=severity,
            entity_type=LogEntityType.IMPORT,
            message=f"{total} rows normalized, {flagged} with coerced values",
            file_type=file_type,
            total=total,
            flagged=flagged,
        )
        self._log(entry, severity)

    def import_completed(self, filename: Optional[str], transaction_count: int):
        """Log a confirmed import."""
        entry = self._create_log_entry(
            event="import.completed",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.IMPORT,
            message=f"Import confirmed: {transaction_count} transactions",
            filename=filename,
            transaction_count=transaction_count,
        )
        self._log(entry, LogSeverity.INFO)

    def transactions_matched(self, total: int, suggested: int, partial: int, duplicates: int):
        """Log a reconciliation run over imported transactions."""
        severity = LogSeverity.WARN if duplicates else LogSeverity.INFO
        entry = self._create_log_entry(
            event="import.matched",
            severity=severity,
            entity_type=LogEntityType.IMPORT,
            message=f"{total} transactions matched: {suggested} suggested, {partial} partial",
            total=total,
            suggested=suggested,
            partial=partial,
            duplicates=duplicates,
        )
        self._log(entry, severity)

    # Fee events
    def fee_created(
        self,
        fee_id: str,
        member_id: str,
        period_start: date,
        period_end: date,
        amount: Decimal,
        term: str,
    ):
        """Log fee creation."""
        entry = self._create_log_entry(
            event="fee.created",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.FEE,
            entity_id=fee_id,
            member_id=member_id,
            message=f"Fee created for period {period_start.isoformat()} - {period_end.isoformat()}",
            period_start=period_start,
            period_end=period_end,
            amount=amount,
            term=term,
        )
        self._log(entry, LogSeverity.INFO)

    def fee_overlap_detected(self, member_id: str, period_start: date, period_end: date, overlapping_ids: List[str]):
        """Log a fee period that overlaps existing fees of the member."""
        entry = self._create_log_entry(
            event="fee.overlap_detected",
            severity=LogSeverity.WARN,
            entity_type=LogEntityType.FEE,
            member_id=member_id,
            message=f"Period overlaps {len(overlapping_ids)} existing fee(s)",
            period_start=period_start,
            period_end=period_end,
            overlapping_fee_ids=overlapping_ids,
        )
        self._log(entry, LogSeverity.WARN)

    def fee_paid(self, fee_id: str, member_id: str, paid_at: datetime):
        """Log a fee marked as paid."""
        entry = self._create_log_entry(
            event="fee.paid",
            severity=LogSeverity.INFO,
            entity_type=LogEntityType.FEE,
            entity_id=fee_id,
            member_id=member_id,
            message="Fee marked as paid",
            paid_at=paid_at,
        )
        self._log(entry, LogSeverity.INFO)

    # Generation events
    def fees_generated(self, strategy: str, as_of: date, generated: int, skipped_members: int, errors: int):
        """Log a fee generation run."""
        severity = LogSeverity.WARN if errors else LogSeverity.INFO
        entry = self._create_log_entry(
            event="fees.generated",
            severity=severity,
            entity_type=LogEntityType.SYSTEM,
            message=f"Fee generation ({strategy}): {generated} fees created",
            strategy=strategy,
            as_of=as_of,
            generated=generated,
            skipped_members=skipped_members,
            errors=errors,
        )
        self._log(entry, severity)

    def fee_generation_failed(self, member_id: str, error: str):
        """Log a member for whom fee generation failed."""
        entry = self._create_log_entry(
            event="fees.generation_failed",
            severity=LogSeverity.ERROR,
            entity_type=LogEntityType.MEMBER,
            entity_id=member_id,
            member_id=member_id,
            message="Fee generation failed for member",
            error=error,
        )
        self._log(entry, LogSeverity.ERROR)

    # SEPA events
    def sepa_batch_generated(self, batch_ref: str, count: int, total: Decimal, warnings: List[str]):
        """Log a generated SEPA direct-debit batch."""
        severity = LogSeverity.WARN if warnings else LogSeverity.INFO
        entry = self._create_log_entry(
            event="sepa.batch_generated",
            severity=severity,
            entity_type=LogEntityType.SEPA,
            entity_id=batch_ref,
            message=f"SEPA batch {batch_ref}: {count} transactions",
            count=count,
            total=total,
            warnings=warnings,
        )
        self._log(entry, severity)


# Global logger instance
structured_logger = StructuredLogger()
