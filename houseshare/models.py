from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from houseshare.extensions import db


ASSIGNED_TO_ALL = 'all'


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ============================================================
# MONEY
# ============================================================
# Amounts are stored as integer minor units (cents / kobo).
CENT = Decimal('0.01')


def to_cents(amount):
    return int((Decimal(str(amount)) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents):
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def money(cents_attr):
    """Decimal view over an integer cents column."""

    def getter(self):
        return from_cents(getattr(self, cents_attr))

    def setter(self, value):
        setattr(self, cents_attr, None if value is None else to_cents(value))

    return property(getter, setter)


# ============================================================
# ENUMS
# ============================================================
class UserRole(Enum):
    """Display label only. Authority comes from House.admin_id / sub-admin flags."""
    TENANT = 'tenant'
    ADMIN = 'admin'
    SUB_ADMIN = 'sub-admin'


class MemberAction(Enum):
    ADD = 'add'
    REMOVE = 'remove'
    PROMOTE = 'promote'
    DEMOTE = 'demote'


class PaymentMethod(Enum):
    WALLET = 'wallet'
    GATEWAY = 'gateway'


class TransactionType(Enum):
    TOPUP = 'topup'
    PAYMENT = 'payment'
    WITHDRAWAL = 'withdrawal'


class TransactionStatus(Enum):
    PENDING = 'pending'
    SUCCESS = 'success'
    FAILED = 'failed'


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    A registered user.
    A user belongs to at most one house at a time (house_id).
    """
    __tablename__ = 'users'
    __table_args__ = (
        db.CheckConstraint('wallet_balance_cents >= 0', name='ck_users_wallet_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), default=UserRole.TENANT.value, nullable=False)
    wallet_balance_cents = db.Column(db.BigInteger, default=0, nullable=False)
    wallet_balance = money('wallet_balance_cents')

    # Plain id reference; House and User do not own each other
    house_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'wallet_balance': self.wallet_balance,
            'house_id': self.house_id,
        }

    def to_public_dict(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}

    def __repr__(self):
        return f'<User {self.email}>'


# ============================================================
# HOUSE MODEL
# ============================================================
class House(db.Model):
    """
    A shared-tenancy group.

    Tenancy lives in HouseMember rows (insertion ordered).
    INVARIANTS:
    - admin_id is always one of the tenants
    - sub-admins are tenants and never the admin
    """
    __tablename__ = 'houses'
    __table_args__ = (
        db.CheckConstraint('wallet_balance_cents >= 0', name='ck_houses_wallet_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    admin_id = db.Column(db.Integer, nullable=False, index=True)
    join_code = db.Column(db.String(6), unique=True, nullable=False, index=True)

    # Chat settings (consumed by the messaging feature)
    allow_everyone_to_post = db.Column(db.Boolean, default=True, nullable=False)
    announcements_enabled = db.Column(db.Boolean, default=True, nullable=False)

    # House wallet: credited by bill payments, drained by admin withdrawals
    wallet_balance_cents = db.Column(db.BigInteger, default=0, nullable=False)
    wallet_balance = money('wallet_balance_cents')

    created_at = db.Column(db.DateTime, default=utcnow)

    members = db.relationship('HouseMember', backref='house',
                              order_by='HouseMember.id',
                              cascade='all, delete-orphan')

    @property
    def tenant_ids(self):
        return [m.user_id for m in self.members]

    @property
    def sub_admin_ids(self):
        return [m.user_id for m in self.members if m.is_sub_admin]

    @property
    def chat_settings(self):
        return {
            'allow_everyone_to_post': self.allow_everyone_to_post,
            'announcements_enabled': self.announcements_enabled,
        }

    def get_membership(self, user_id):
        for membership in self.members:
            if membership.user_id == user_id:
                return membership
        return None

    def is_tenant(self, user_id):
        return self.get_membership(user_id) is not None

    def to_dict(self, resolve=False):
        data = {
            'id': self.id,
            'name': self.name,
            'admin_id': self.admin_id,
            'join_code': self.join_code,
            'tenants': self.tenant_ids,
            'sub_admins': self.sub_admin_ids,
            'chat_settings': self.chat_settings,
            'wallet_balance': self.wallet_balance,
            'created_at': _iso(self.created_at),
        }
        if resolve:
            data['tenants'] = [m.user.to_public_dict() for m in self.members]
            data['sub_admins'] = [m.user.to_public_dict() for m in self.members if m.is_sub_admin]
        return data

    def __repr__(self):
        return f'<House {self.name} code={self.join_code}>'


# ============================================================
# HOUSE MEMBER MODEL
# ============================================================
class HouseMember(db.Model):
    """One row per tenant of a house. is_sub_admin marks elevated tenants."""
    __tablename__ = 'house_members'

    id = db.Column(db.Integer, primary_key=True)
    house_id = db.Column(db.Integer, db.ForeignKey('houses.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    is_sub_admin = db.Column(db.Boolean, default=False, nullable=False)
    joined_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship('User')

    # Prevent duplicate memberships
    __table_args__ = (
        db.UniqueConstraint('house_id', 'user_id', name='unique_house_member'),
    )

    def __repr__(self):
        return f'<HouseMember user={self.user_id} house={self.house_id}>'


# ============================================================
# BILL MODEL
# ============================================================
class Bill(db.Model):
    """
    A charge scoped to a house.

    'amount' is what every assigned tenant owes individually.
    'target_amount' is an informational aggregate goal, never enforced.
    'assigned_to' is either ASSIGNED_TO_ALL or a list of user ids.
    """
    __tablename__ = 'bills'

    id = db.Column(db.Integer, primary_key=True)
    house_id = db.Column(db.Integer, db.ForeignKey('houses.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    amount = money('amount_cents')
    due_date = db.Column(db.DateTime, nullable=False)
    target_amount_cents = db.Column(db.BigInteger, nullable=True)
    target_amount = money('target_amount_cents')
    assigned_to = db.Column(db.JSON, nullable=False, default=ASSIGNED_TO_ALL)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    payments = db.relationship('BillPayment', backref='bill',
                               order_by='BillPayment.id',
                               cascade='all, delete-orphan')

    def is_assigned(self, user_id):
        if self.assigned_to == ASSIGNED_TO_ALL:
            return True
        return user_id in (self.assigned_to or [])

    def payment_for(self, user_id):
        for payment in self.payments:
            if payment.tenant_id == user_id:
                return payment
        return None

    def is_paid_by(self, user_id):
        payment = self.payment_for(user_id)
        return bool(payment and payment.paid)

    def get_total_collected(self):
        return sum((p.amount_paid for p in self.payments if p.paid), Decimal('0.00'))

    def to_dict(self, viewer_id=None):
        paid = [p for p in self.payments if p.paid]
        data = {
            'id': self.id,
            'house_id': self.house_id,
            'name': self.name,
            'amount': self.amount,
            'due_date': _iso(self.due_date),
            'target_amount': self.target_amount,
            'assigned_to': self.assigned_to,
            'payments': [p.to_dict() for p in self.payments],
            'paid_count': len(paid),
            'total_collected': self.get_total_collected(),
            'created_at': _iso(self.created_at),
        }
        if viewer_id is not None:
            data['assigned_to_me'] = self.is_assigned(viewer_id)
            data['paid_by_me'] = self.is_paid_by(viewer_id)
        return data

    def __repr__(self):
        return f'<Bill {self.name} amount={self.amount}>'


# ============================================================
# BILL PAYMENT MODEL
# ============================================================
class BillPayment(db.Model):
    """
    Settlement status of one tenant on one bill.
    Exactly one row per (bill, tenant); moves Unpaid -> Paid once.
    """
    __tablename__ = 'bill_payments'

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey('bills.id'), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    paid = db.Column(db.Boolean, default=False, nullable=False)
    amount_paid_cents = db.Column(db.BigInteger, default=0, nullable=False)
    amount_paid = money('amount_paid_cents')
    paid_at = db.Column(db.DateTime, nullable=True)

    tenant = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('bill_id', 'tenant_id', name='unique_bill_payment'),
    )

    def mark_paid(self, amount):
        if self.paid:
            raise ValueError('Payment already settled')
        self.paid = True
        self.amount_paid = amount
        self.paid_at = utcnow()

    def to_dict(self):
        return {
            'tenant': self.tenant.to_public_dict() if self.tenant else {'id': self.tenant_id},
            'paid': self.paid,
            'amount_paid': self.amount_paid,
            'date': _iso(self.paid_at),
        }

    def __repr__(self):
        return f'<BillPayment bill={self.bill_id} tenant={self.tenant_id} paid={self.paid}>'


# ============================================================
# TRANSACTION MODEL (LEDGER)
# ============================================================
class Transaction(db.Model):
    """
    Append-only wallet ledger entry.

    - 'topup': gateway-verified credit to a user wallet (carries the reference)
    - 'payment': bill settled from a user wallet
    - 'withdrawal': admin payout from the house wallet
    """
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    transaction_type = db.Column(db.String(20), nullable=False)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    amount = money('amount_cents')
    status = db.Column(db.String(20), default=TransactionStatus.PENDING.value, nullable=False)

    # Gateway reference; a reference is credited at most once
    reference = db.Column(db.String(100), unique=True, nullable=True)

    house_id = db.Column(db.Integer, nullable=True)
    bill_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    VALID_TYPES = [t.value for t in TransactionType]

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.transaction_type,
            'amount': self.amount,
            'status': self.status,
            'reference': self.reference,
            'house_id': self.house_id,
            'bill_id': self.bill_id,
            'description': self.description,
            'date': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Transaction {self.transaction_type} amount={self.amount} status={self.status}>'
