"""
BILL SERVICE
============

Handles:
- Creating bills (admin or sub-admin)
- Listing a house's bills
- Paying a bill from the wallet

State per (bill, tenant): Unpaid -> Paid, terminal.
A bill's 'amount' is owed by every assigned tenant individually;
'target_amount' is informational only.
"""

from datetime import date, datetime

import structlog
from sqlalchemy.exc import IntegrityError

from houseshare.models import (
    Bill, BillPayment, Transaction, PaymentMethod, TransactionType,
    TransactionStatus, ASSIGNED_TO_ALL
)
from houseshare.services import wallet_service
from houseshare.services.authorization_service import can_create_bill, require_authorization
from houseshare.services.errors import (
    ServiceError, AuthorizationError, NotFoundError, ValidationError, NotAssignedError,
    AlreadyPaidError, UnsupportedMethodError
)

log = structlog.get_logger(__name__)


class BillError(ServiceError):
    """Base exception for bill operations"""
    code = 'server_error'
    status_code = 500


# ============================================================
# INPUT PARSING
# ============================================================

def _parse_due_date(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not value:
        raise ValidationError("Due date is required")
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("Due date must be an ISO date, e.g. 2024-12-31")


def _parse_assigned_to(value, house):
    """'all' (default) or a non-empty list of tenant ids of this house."""
    if value in (None, '', ASSIGNED_TO_ALL):
        return ASSIGNED_TO_ALL

    if not isinstance(value, (list, tuple, set)):
        raise ValidationError("assigned_to must be 'all' or a list of user ids")

    user_ids = []
    for raw in value:
        try:
            user_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid user id in assigned_to: {raw!r}")
        if user_id not in user_ids:
            user_ids.append(user_id)

    if not user_ids:
        raise ValidationError("assigned_to must name at least one tenant")

    outsiders = [uid for uid in user_ids if not house.is_tenant(uid)]
    if outsiders:
        raise ValidationError(f"Users {outsiders} are not members of this house")

    return user_ids


# ============================================================
# CREATE BILL
# ============================================================

def create_bill(store, actor_id, house_id, name, amount, due_date,
                assigned_to=ASSIGNED_TO_ALL, target_amount=None):
    """Admin or sub-admin creates a bill with no payments."""
    try:
        house = store.get_house(house_id)
        if not house:
            raise AuthorizationError("Not authorized")

        require_authorization(can_create_bill, house, actor_id)

        name = (name or '').strip()
        if not name:
            raise ValidationError("Bill name is required")

        bill = Bill(
            house_id=house.id,
            name=name,
            amount=wallet_service.parse_amount(amount),
            due_date=_parse_due_date(due_date),
            target_amount=(
                wallet_service.parse_amount(target_amount, 'target_amount')
                if target_amount not in (None, '') else None
            ),
            assigned_to=_parse_assigned_to(assigned_to, house),
            created_by=actor_id
        )
        store.add(bill)
        store.commit()

        log.info("bill_created", bill_id=bill.id, house_id=house.id,
                 actor_id=actor_id, amount=str(bill.amount))
        return bill

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise BillError(f"Failed to create bill: {str(e)}") from e


# ============================================================
# LIST BILLS
# ============================================================

def list_bills(store, house_id):
    """Bills of a house, latest due date first. No house -> no bills."""
    if house_id is None:
        return []
    return store.bills_for_house(house_id)


def list_bills_for_user(store, user_id):
    user = store.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")
    return list_bills(store, user.house_id)


# ============================================================
# PAY BILL (ATOMIC)
# ============================================================

def pay_bill(store, payer_id, bill_id, method=PaymentMethod.WALLET.value):
    """
    Settle the payer's share of a bill.

    ATOMIC OPERATION (wallet method):
    1. Conditional debit of the payer's wallet
    2. Payer's payment record marked paid
    3. House wallet credited
    4. 'payment' Transaction appended

    Returns: (payer's new balance, BillPayment)
    """
    try:
        payer = store.get_user(payer_id)
        if not payer:
            raise NotFoundError("User not found")

        bill = store.get_bill(bill_id)
        if not bill or payer.house_id is None or bill.house_id != payer.house_id:
            raise NotFoundError("Bill not found")

        if not bill.is_assigned(payer.id):
            raise NotAssignedError("Not assigned to this bill")

        payment = bill.payment_for(payer.id)
        if payment is not None and payment.paid:
            raise AlreadyPaidError("Already paid")

        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unknown payment method '{method}'")

        if method == PaymentMethod.GATEWAY:
            raise UnsupportedMethodError("Gateway payment not implemented yet")

        new_balance = wallet_service.debit(store, payer.id, bill.amount)

        if payment is None:
            payment = BillPayment(tenant_id=payer.id)
            bill.payments.append(payment)
        payment.mark_paid(bill.amount)

        store.credit_house_wallet(bill.house_id, bill.amount)

        store.add(Transaction(
            user_id=payer.id,
            transaction_type=TransactionType.PAYMENT.value,
            amount=bill.amount,
            status=TransactionStatus.SUCCESS.value,
            house_id=bill.house_id,
            bill_id=bill.id,
            description=f"Payment for {bill.name}"
        ))
        store.commit()

        log.info("bill_paid", bill_id=bill.id, payer_id=payer.id, amount=str(bill.amount))
        return new_balance, payment

    except ServiceError:
        store.rollback()
        raise
    except IntegrityError as e:
        # Concurrent payment for the same (bill, tenant) won the unique constraint
        store.rollback()
        raise AlreadyPaidError("Already paid") from e
    except Exception as e:
        store.rollback()
        raise BillError(f"Payment failed: {str(e)}") from e
