"""
Payment Module Handlers - Command→Event transformation for payments

These handlers only produce events for the payment stream. Invoice links
are decided by the settlement engine, which commits them in the same batch.
"""

import datetime

from pydantic import BaseModel

from site_ledger.approval.models import ApprovalLog
from site_ledger.approval.workflow import ensure_pending, ensure_rejected, resolve_decision
from site_ledger.integrations.blob_store import Attachment
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_code, generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.time import TimeProvider
from site_ledger.payment.commands import (
    CreatePayment,
    DecidePayment,
    ResubmitPayment,
    UpdatePayment,
)
from site_ledger.payment.events import (
    PaymentApproved,
    PaymentCreated,
    PaymentPaid,
    PaymentRejected,
    PaymentResubmitted,
    PaymentUpdated,
)
from site_ledger.payment.invariants import validate_payment_approved
from site_ledger.payment.models import Payment, PaymentStatus

STREAM_TYPE = "payment"


class PaymentCommandHandlers:
    """
    Command handlers for the payment module

    Handlers receive the payment already loaded and validated to exist;
    invoice backing is checked by the caller before they run.
    """

    def __init__(self, time_provider: TimeProvider, policy: LedgerPolicy) -> None:
        self.time_provider = time_provider
        self.policy = policy

    def _event(
        self,
        payment_id: str,
        event_type: str,
        payload: BaseModel,
        version: int,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=payment_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload.model_dump(mode="json"),
            version=version,
        )

    @staticmethod
    def _changes(payment: Payment, command: UpdatePayment, attachments: list[Attachment]) -> dict:
        current = payment.model_dump(mode="json")
        supplied = command.model_dump(mode="json", exclude={"payment_id"}, exclude_none=True)
        changes = {key: value for key, value in supplied.items() if current.get(key) != value}
        if attachments:
            changes["attachments"] = current["attachments"] + [
                a.model_dump(mode="json") for a in attachments
            ]
        return changes

    def handle_create_payment(
        self,
        command: CreatePayment,
        command_id: str,
        actor_id: str | None,
        attachments: list[Attachment],
    ) -> list[Event]:
        """
        Handle CreatePayment command

        Returns:
            A single PaymentCreated event opening a new payment stream
        """
        now = self.time_provider.now()
        payment_id = generate_id()

        return [
            self._event(
                payment_id,
                "PaymentCreated",
                PaymentCreated(
                    payment_id=payment_id,
                    code=generate_code(self.policy.payment_code_prefix, now),
                    project_id=command.project_id,
                    payee_id=command.payee_id,
                    type=command.type,
                    amount=command.amount,
                    planned_date=command.planned_date,
                    method=command.method,
                    invoice_ids=command.invoice_ids,
                    bank_info=command.bank_info,
                    currency=command.currency or self.policy.default_currency,
                    attachments=attachments,
                    remarks=command.remarks,
                    created_at=now,
                    created_by=actor_id,
                ),
                version=1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_update_payment(
        self,
        command: UpdatePayment,
        command_id: str,
        actor_id: str | None,
        payment: Payment,
        attachments: list[Attachment],
    ) -> list[Event]:
        """
        Handle UpdatePayment command

        Returns:
            A PaymentUpdated event, or nothing if no field actually changes

        Raises:
            NotPending: If the payment left pending
        """
        ensure_pending("Payment", payment.payment_id, payment.status.value)

        changes = self._changes(payment, command, attachments)
        if not changes:
            return []

        return [
            self._event(
                payment.payment_id,
                "PaymentUpdated",
                PaymentUpdated(
                    payment_id=payment.payment_id,
                    changes=changes,
                    updated_at=self.time_provider.now(),
                    updated_by=actor_id,
                ),
                version=payment.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_decide_payment(
        self,
        command: DecidePayment,
        command_id: str,
        actor_id: str,
        payment: Payment,
    ) -> list[Event]:
        """
        Handle DecidePayment command (pending → approved | rejected)

        Raises:
            NotPending: If the payment is not pending
        """
        ensure_pending("Payment", payment.payment_id, payment.status.value)

        record, status = resolve_decision(
            ApprovalLog(records=tuple(payment.approvals)),
            approver=actor_id,
            decision=command.decision,
            comments=command.comments,
            decided_at=self.time_provider.now(),
        )

        if status.value == PaymentStatus.APPROVED.value:
            event_type, payload = "PaymentApproved", PaymentApproved(
                payment_id=payment.payment_id, approval=record
            )
        else:
            event_type, payload = "PaymentRejected", PaymentRejected(
                payment_id=payment.payment_id,
                approval=record,
                released_invoice_ids=payment.invoice_ids,
            )

        return [
            self._event(
                payment.payment_id,
                event_type,
                payload,
                version=payment.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_resubmit_payment(
        self,
        command: ResubmitPayment,
        command_id: str,
        actor_id: str | None,
        payment: Payment,
        attachments: list[Attachment],
    ) -> list[Event]:
        """
        Handle ResubmitPayment command (rejected → pending)

        Always emits an event, even without amendments.

        Raises:
            NotRejected: If the payment is not rejected
        """
        ensure_rejected("Payment", payment.payment_id, payment.status.value)

        return [
            self._event(
                payment.payment_id,
                "PaymentResubmitted",
                PaymentResubmitted(
                    payment_id=payment.payment_id,
                    changes=self._changes(payment, command, attachments),
                    resubmitted_at=self.time_provider.now(),
                    resubmitted_by=actor_id,
                ),
                version=payment.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_confirm_payment(
        self,
        payment: Payment,
        actual_date: datetime.date | None,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        """
        Handle ConfirmPayment command (approved → paid)

        Args:
            actual_date: Payout date, today if not given

        Raises:
            NotApproved: If the payment is not approved
        """
        validate_payment_approved(payment)
        now = self.time_provider.now()

        return [
            self._event(
                payment.payment_id,
                "PaymentPaid",
                PaymentPaid(
                    payment_id=payment.payment_id,
                    actual_date=actual_date or now.date(),
                    invoice_ids=payment.invoice_ids,
                    paid_at=now,
                    paid_by=actor_id,
                ),
                version=payment.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]
