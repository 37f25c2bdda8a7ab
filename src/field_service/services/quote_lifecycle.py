"""Quote lifecycle.

Moves quotes between statuses with conditional writes:

    draft --send--> sent --approve--> approved --(job creation)--> scheduled
                         --decline--> declined
                         --expire---> expired

Client responses arrive through secure links and may be replayed or raced;
replaying the same answer always succeeds, contradicting answers fail.
"""

from __future__ import annotations

from uuid import UUID

from field_service.core.exceptions import ConflictError, NotFoundError, ValidationError
from field_service.core.logging import get_logger, resolve_correlation_id
from field_service.db.base import utcnow
from field_service.db.models.audit import PrincipalType
from field_service.db.models.quotes import QuoteModel, QuoteStatus
from field_service.db.repositories.quotes import QuoteRepository
from field_service.services.audit_trail import AuditTrail
from field_service.services.notifications import QuoteResponseNotifier

log = get_logger(__name__)


class QuoteAction:
    """Client answers to a sent quote."""
    APPROVE = "approve"
    DECLINE = "decline"

    ALL = (APPROVE, DECLINE)


_TARGET_STATUS = {
    QuoteAction.APPROVE: QuoteStatus.APPROVED,
    QuoteAction.DECLINE: QuoteStatus.DECLINED,
}

_TIMESTAMP_FIELD = {
    QuoteAction.APPROVE: "approved_at",
    QuoteAction.DECLINE: "declined_at",
}

_OPPOSITE = {
    QuoteAction.APPROVE: QuoteAction.DECLINE,
    QuoteAction.DECLINE: QuoteAction.APPROVE,
}


def _matches_action(action: str, status: str) -> bool:
    """Whether ``status`` is where ``action`` leads.

    ``scheduled`` is only reachable through ``approved``, so it counts as an
    approval.
    """
    if status == _TARGET_STATUS[action]:
        return True
    return action == QuoteAction.APPROVE and status == QuoteStatus.SCHEDULED


class QuoteLifecycleService:
    """Status transitions of quotes.

    Usage:
        service = QuoteLifecycleService(QuoteRepository(session), audit, notifier)
        quote = await service.respond(tenant_id, quote_id, token_id, "approve")
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        audit: AuditTrail,
        notifier: QuoteResponseNotifier | None = None,
    ) -> None:
        self._quote_repo = quote_repo
        self._audit = audit
        self._notifier = notifier

    async def _load(self, tenant_id: UUID, quote_id: UUID) -> QuoteModel:
        quote = await self._quote_repo.get(tenant_id, quote_id)
        if quote is None:
            raise NotFoundError("Quote not found", details={"quote_id": str(quote_id)})
        return quote

    # =========================================================================
    # Client response
    # =========================================================================

    async def respond(
        self,
        tenant_id: UUID,
        quote_id: UUID,
        token_id: str,
        action: str,
        correlation_id: str | None = None,
    ) -> QuoteModel:
        """Apply a client's approve or decline answer.

        Args:
            tenant_id: Tenant resolved from the secure link
            quote_id: Quote resolved from the secure link
            token_id: Secure link token, recorded as the acting principal
            action: ``approve`` or ``decline``
            correlation_id: Optional ID tying together log lines and audit events

        Returns:
            Current quote state (unchanged on an idempotent replay)

        Raises:
            NotFoundError: Quote does not exist in the tenant
            ValidationError: Unknown action, quote not sent, or already
                answered the other way
            ConflictError: Quote moved to an unexpected status concurrently
        """
        if action not in QuoteAction.ALL:
            raise ValidationError(f"Unknown quote action \"{action}\"")

        correlation_id = resolve_correlation_id(correlation_id)
        target_status = _TARGET_STATUS[action]
        past = target_status
        opposite_past = _TARGET_STATUS[_OPPOSITE[action]]

        quote = await self._load(tenant_id, quote_id)

        if _matches_action(action, quote.status):
            log.info(
                "Quote response replayed",
                tenant_id=str(tenant_id),
                quote_id=str(quote_id),
                status=quote.status,
                correlation_id=correlation_id,
            )
            return quote

        if _matches_action(_OPPOSITE[action], quote.status):
            raise ValidationError(f"This quote has already been {opposite_past}")

        if quote.status != QuoteStatus.SENT:
            raise ValidationError(
                f"Only sent quotes can be {past}",
                details={"status": quote.status},
            )

        updated = await self._quote_repo.update_status(
            tenant_id,
            quote_id,
            target_status,
            extra_fields={_TIMESTAMP_FIELD[action]: utcnow()},
            expected_statuses=[QuoteStatus.SENT],
        )

        if updated is None:
            # Lost the race; decide from the winner's result
            current = await self._load(tenant_id, quote_id)
            if _matches_action(action, current.status):
                log.info(
                    "Quote response raced with identical response",
                    tenant_id=str(tenant_id),
                    quote_id=str(quote_id),
                    correlation_id=correlation_id,
                )
                return current
            if _matches_action(_OPPOSITE[action], current.status):
                raise ValidationError(f"This quote has already been {opposite_past}")
            raise ConflictError(
                "Quote status was changed concurrently",
                details={"status": current.status},
            )

        log.info(
            "Quote response recorded",
            tenant_id=str(tenant_id),
            quote_id=str(quote_id),
            status=updated.status,
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.EXTERNAL,
            principal_id=str(token_id),
            event_name=f"quote.{past}",
            subject_type="quote",
            subject_id=quote_id,
            correlation_id=correlation_id,
        )

        if self._notifier is not None:
            try:
                await self._notifier.notify_quote_response(
                    tenant_id, updated, action, correlation_id=correlation_id
                )
            except Exception:
                log.warning(
                    "Quote notification failed",
                    quote_id=str(quote_id),
                    correlation_id=correlation_id,
                    exc_info=True,
                )

        return updated

    # =========================================================================
    # Staff transitions
    # =========================================================================

    async def send_quote(
        self,
        tenant_id: UUID,
        user_id: UUID,
        quote_id: UUID,
        correlation_id: str | None = None,
    ) -> QuoteModel:
        """Mark a draft quote as sent to the client.

        Raises:
            NotFoundError: Quote does not exist in the tenant
            ValidationError: Quote is not a draft or has no line items
            ConflictError: Another caller sent the quote first
        """
        correlation_id = resolve_correlation_id(correlation_id)
        quote = await self._load(tenant_id, quote_id)

        if quote.status != QuoteStatus.DRAFT:
            raise ValidationError(f"Cannot send a quote with status \"{quote.status}\"")

        if not quote.line_items:
            raise ValidationError("Cannot send a quote with no line items")

        updated = await self._quote_repo.update_status(
            tenant_id,
            quote_id,
            QuoteStatus.SENT,
            extra_fields={"sent_at": utcnow()},
            expected_statuses=[QuoteStatus.DRAFT],
        )
        if updated is None:
            raise ConflictError("Quote has already been sent")

        log.info(
            "Quote sent",
            tenant_id=str(tenant_id),
            quote_id=str(quote_id),
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(user_id),
            event_name="quote.sent",
            subject_type="quote",
            subject_id=quote_id,
            correlation_id=correlation_id,
        )
        return updated

    async def expire_quote(
        self,
        tenant_id: UUID,
        user_id: UUID,
        quote_id: UUID,
        correlation_id: str | None = None,
    ) -> QuoteModel:
        """Expire a sent quote the client never answered.

        Expiring an already expired quote is a no-op.

        Raises:
            NotFoundError: Quote does not exist in the tenant
            ValidationError: Quote is not in ``sent``
            ConflictError: Quote was answered concurrently
        """
        correlation_id = resolve_correlation_id(correlation_id)
        quote = await self._load(tenant_id, quote_id)

        if quote.status == QuoteStatus.EXPIRED:
            return quote

        if quote.status != QuoteStatus.SENT:
            raise ValidationError(f"Cannot expire a quote with status \"{quote.status}\"")

        updated = await self._quote_repo.update_status(
            tenant_id,
            quote_id,
            QuoteStatus.EXPIRED,
            expected_statuses=[QuoteStatus.SENT],
        )
        if updated is None:
            current = await self._load(tenant_id, quote_id)
            if current.status == QuoteStatus.EXPIRED:
                return current
            raise ConflictError(
                "Quote status was changed concurrently",
                details={"status": current.status},
            )

        log.info(
            "Quote expired",
            tenant_id=str(tenant_id),
            quote_id=str(quote_id),
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(user_id),
            event_name="quote.expired",
            subject_type="quote",
            subject_id=quote_id,
            correlation_id=correlation_id,
        )
        return updated
