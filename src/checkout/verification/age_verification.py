"""The recorded outcome of one age check.

Stores only the outcome: no name and no date of birth. Immutable once
recorded; the repository refuses a second write.
"""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout
from checkout.utils.write_once import WriteOnceRepository
from checkout.verification.port import VerificationStatus


@checkout.aggregate
class AgeVerification:
    order_id = Identifier(required=True)
    status = String(max_length=20, required=True, choices=VerificationStatus)
    provider = String(max_length=50, required=True)
    reference_id = String(max_length=255)
    reason_code = String(max_length=100)
    message = String(max_length=500)
    attempts = Integer(default=0)
    verified_at = DateTime(required=True)

    @classmethod
    def record(cls, order_id, result):
        """Build the aggregate from a ``VerificationResult``."""
        return cls(
            order_id=order_id,
            status=result.status.value,
            provider=result.provider,
            reference_id=result.reference_id,
            reason_code=result.reason_code,
            message=result.message,
            attempts=result.attempts,
            verified_at=result.verified_at,
        )


@checkout.repository(part_of=AgeVerification)
class AgeVerificationRepository(WriteOnceRepository):
    pass
