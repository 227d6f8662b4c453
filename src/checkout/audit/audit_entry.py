"""AuditEntry aggregate — append-only log of compliance-relevant actions.

Every order attempt and every stake-call resolution leaves one entry. Entries
are recorded through their own command so that a failed attempt's entry
survives the rollback of that attempt.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.domain import checkout, logger
from checkout.utils.write_once import WriteOnceRepository


class ActorType(Enum):
    USER = "USER"
    SYSTEM = "SYSTEM"


class AuditAction(Enum):
    CREATE_ORDER = "CREATE_ORDER"
    AGE_VERIFICATION = "AGE_VERIFICATION"
    PAYMENT_AUTHORIZATION = "PAYMENT_AUTHORIZATION"
    STAKE_CALL = "STAKE_CALL"


class AuditResult(Enum):
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    ERROR = "ERROR"


@checkout.aggregate
class AuditEntry:
    actor_type = String(max_length=10, required=True, choices=ActorType)
    actor_id = Identifier()
    action = String(max_length=30, required=True, choices=AuditAction)
    entity_type = String(max_length=50)
    entity_id = Identifier()
    result = String(max_length=10, required=True, choices=AuditResult)
    reason_code = String(max_length=100)
    details = Text()  # JSON object, never PII
    recorded_at = DateTime(required=True)


@checkout.repository(part_of=AuditEntry)
class AuditEntryRepository(WriteOnceRepository):
    def for_entity(self, entity_id) -> list[AuditEntry]:
        return self._dao.query.filter(entity_id=str(entity_id)).all().items


@checkout.command(part_of="AuditEntry")
class RecordAuditEntry:
    actor_type = String(max_length=10, required=True)
    actor_id = Identifier()
    action = String(max_length=30, required=True)
    entity_type = String(max_length=50)
    entity_id = Identifier()
    result = String(max_length=10, required=True)
    reason_code = String(max_length=100)
    details = Text()


@checkout.command_handler(part_of=AuditEntry)
class RecordAuditEntryHandler:
    @handle(RecordAuditEntry)
    def record_audit_entry(self, command):
        entry = AuditEntry(
            actor_type=command.actor_type,
            actor_id=command.actor_id,
            action=command.action,
            entity_type=command.entity_type,
            entity_id=command.entity_id,
            result=command.result,
            reason_code=command.reason_code,
            details=command.details,
            recorded_at=datetime.now(UTC),
        )
        current_domain.repository_for(AuditEntry).add(entry)
        return str(entry.id)


def record_audit(
    action: AuditAction,
    result: AuditResult,
    actor_type: ActorType = ActorType.USER,
    actor_id=None,
    entity_type=None,
    entity_id=None,
    reason_code=None,
    details=None,
):
    """Record an entry in its own unit of work; failures are logged, never raised."""
    try:
        return current_domain.process(
            RecordAuditEntry(
                actor_type=actor_type.value,
                actor_id=actor_id,
                action=action.value,
                entity_type=entity_type,
                entity_id=entity_id,
                result=result.value,
                reason_code=reason_code,
                details=details,
            ),
            asynchronous=False,
        )
    except Exception:
        logger.exception("Audit entry could not be recorded", action=action.value, result=result.value)
        return None
