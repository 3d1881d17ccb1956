"""
WALLET SERVICE - ATOMIC FINANCIAL OPERATIONS
=============================================

CRITICAL BUSINESS RULES:
1. A user wallet never goes below zero
2. Balances change through conditional UPDATEs, never read-modify-write
3. A top-up credits only after the gateway verified the reference
4. Balance change and its Transaction row are committed together
5. Only the house admin can withdraw from the house wallet
"""

from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy.exc import IntegrityError

from houseshare.gateway import GatewayError
from houseshare.models import CENT, Transaction, TransactionType, TransactionStatus
from houseshare.services.authorization_service import (
    can_withdraw_house_funds, require_authorization
)
from houseshare.services.errors import (
    ServiceError, NotFoundError, ValidationError, InsufficientBalanceError,
    InsufficientHouseBalanceError, PaymentVerificationFailedError,
    DuplicateTransactionError
)

log = structlog.get_logger(__name__)


class WalletError(ServiceError):
    """Base exception for wallet operations"""
    code = 'server_error'
    status_code = 500


# ============================================================
# AMOUNT VALIDATION
# ============================================================

def parse_amount(value, field='amount'):
    """Positive decimal with at most two decimal places."""
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"{field} is too large")
    if amount != quantized:
        raise ValidationError(f"{field} can have at most 2 decimal places")
    return quantized


def _get_user(store, user_id):
    user = store.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


# ============================================================
# DEBIT (used by bill payment, caller commits)
# ============================================================

def debit(store, user_id, amount):
    """
    Take amount from the user's wallet.

    Single conditional UPDATE: concurrent debits on one user cannot both
    pass the balance check. Does NOT commit.

    Returns: new balance
    """
    amount = parse_amount(amount)

    if not store.debit_user_wallet(user_id, amount):
        user = _get_user(store, user_id)
        raise InsufficientBalanceError(
            f"Insufficient balance. Required: {amount}, Available: {user.wallet_balance}"
        )

    return _get_user(store, user_id).wallet_balance


# ============================================================
# TOP-UP (ATOMIC)
# ============================================================

def top_up(store, gateway, user_id, reference):
    """
    Credit the wallet with a gateway-verified payment.

    The gateway is asked first; nothing is written unless it reports
    success. Credit and Transaction are committed together.

    Returns: (new balance, Transaction)
    """
    try:
        reference = str(reference or '').strip()
        if not reference:
            raise ValidationError("Payment reference is required")

        user = _get_user(store, user_id)

        if store.transaction_by_reference(reference):
            raise DuplicateTransactionError("This payment reference was already used")

        try:
            result = gateway.verify(reference)
        except GatewayError as e:
            raise PaymentVerificationFailedError("Payment verification failed") from e

        if not result.succeeded or result.amount <= 0:
            log.warning("topup_rejected", user_id=user.id, reference=reference,
                        gateway_status=result.status)
            raise PaymentVerificationFailedError("Payment failed")

        amount = result.amount.quantize(CENT)
        store.credit_user_wallet(user.id, amount)

        transaction = Transaction(
            user_id=user.id,
            transaction_type=TransactionType.TOPUP.value,
            amount=amount,
            status=TransactionStatus.SUCCESS.value,
            reference=reference,
            description="Wallet top-up"
        )
        store.add(transaction)
        store.commit()

        log.info("wallet_topped_up", user_id=user.id, amount=str(amount), reference=reference)
        return user.wallet_balance, transaction

    except ServiceError:
        store.rollback()
        raise
    except IntegrityError as e:
        # A concurrent top-up with the same reference committed first
        store.rollback()
        raise DuplicateTransactionError("This payment reference was already used") from e
    except Exception as e:
        store.rollback()
        raise WalletError(f"Top-up failed: {str(e)}") from e


# ============================================================
# HOUSE WITHDRAWAL (ATOMIC, Admin only)
# ============================================================

def _bank_field(bank_details, *names):
    for name in names:
        value = bank_details.get(name)
        if value not in (None, ''):
            return str(value).strip()
    return None


def house_withdraw(store, actor_id, house_id, amount, bank_details):
    """
    Pay out from the house wallet to a bank account.

    Returns: (new house balance, Transaction)
    """
    try:
        house = store.get_house(house_id, lock=True)
        if not house:
            raise NotFoundError("House not found")

        require_authorization(can_withdraw_house_funds, house, actor_id)

        amount = parse_amount(amount)

        if not isinstance(bank_details, dict):
            raise ValidationError("Bank details are required")
        account_name = _bank_field(bank_details, 'account_name', 'accountName')
        account_number = _bank_field(bank_details, 'account_number', 'accountNumber')
        if not account_name or not account_number:
            raise ValidationError("Bank details need an account name and account number")

        if not store.debit_house_wallet(house.id, amount):
            raise InsufficientHouseBalanceError(
                f"Insufficient house balance. Required: {amount}, Available: {house.wallet_balance}"
            )

        transaction = Transaction(
            user_id=actor_id,
            transaction_type=TransactionType.WITHDRAWAL.value,
            amount=amount,
            status=TransactionStatus.SUCCESS.value,
            house_id=house.id,
            description=f"House withdrawal to {account_name} ({account_number})"
        )
        store.add(transaction)
        store.commit()

        log.info("house_withdrawal", house_id=house.id, actor_id=actor_id, amount=str(amount))
        return house.wallet_balance, transaction

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise WalletError(f"Withdrawal failed: {str(e)}") from e


# ============================================================
# READS
# ============================================================

def get_balance(store, user_id):
    return _get_user(store, user_id).wallet_balance


def get_house_balance(store, user_id):
    """House wallet balance, or None when the user is not in a house."""
    user = _get_user(store, user_id)
    house = store.get_house(user.house_id)
    return house.wallet_balance if house else None


def list_transactions(store, user_id, transaction_type=None):
    """User's ledger, newest first."""
    if transaction_type and transaction_type not in Transaction.VALID_TYPES:
        raise ValidationError(f"Unknown transaction type '{transaction_type}'")
    _get_user(store, user_id)
    return store.transactions_for_user(user_id, transaction_type)
