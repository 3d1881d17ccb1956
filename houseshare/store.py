"""
PERSISTENCE PORT
================

Every service receives a Store instead of reaching for a global session.
The Store owns the lookups the services need, the conditional balance
updates that keep wallets non-negative under concurrency, and the
explicit cascade steps used when a house is deleted.
"""

from sqlalchemy import select, update

from houseshare.models import User, House, Bill, Transaction, UserRole, to_cents


class Store:
    def __init__(self, session):
        self.session = session

    # ============================================================
    # LOOKUPS
    # ============================================================

    def get_user(self, user_id):
        if user_id is None:
            return None
        return self.session.get(User, user_id)

    def get_user_by_email(self, email):
        return self.session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

    def get_house(self, house_id, lock=False):
        """Load a house; lock=True takes a row lock for read-modify-write."""
        if house_id is None:
            return None
        stmt = select(House).where(House.id == house_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_house_by_code(self, join_code, lock=False):
        stmt = select(House).where(House.join_code == join_code)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def join_code_exists(self, join_code):
        return self.session.execute(
            select(House.id).where(House.join_code == join_code)
        ).first() is not None

    def get_bill(self, bill_id):
        if bill_id is None:
            return None
        return self.session.get(Bill, bill_id)

    def bills_for_house(self, house_id):
        return self.session.execute(
            select(Bill)
            .where(Bill.house_id == house_id)
            .order_by(Bill.due_date.desc(), Bill.id.desc())
        ).scalars().all()

    def transactions_for_user(self, user_id, transaction_type=None):
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if transaction_type:
            stmt = stmt.where(Transaction.transaction_type == transaction_type)
        stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        return self.session.execute(stmt).scalars().all()

    def transaction_by_reference(self, reference):
        return self.session.execute(
            select(Transaction).where(Transaction.reference == reference)
        ).scalar_one_or_none()

    # ============================================================
    # ATOMIC BALANCE UPDATES
    # ============================================================

    def debit_user_wallet(self, user_id, amount):
        """Decrement where balance >= amount. Returns False if no row matched."""
        return self._conditional_debit(User, user_id, amount)

    def credit_user_wallet(self, user_id, amount):
        return self._increment(User, user_id, amount)

    def debit_house_wallet(self, house_id, amount):
        return self._conditional_debit(House, house_id, amount)

    def credit_house_wallet(self, house_id, amount):
        return self._increment(House, house_id, amount)

    def _conditional_debit(self, model, pk, amount):
        cents = to_cents(amount)
        result = self.session.execute(
            update(model)
            .where(model.id == pk, model.wallet_balance_cents >= cents)
            .values(wallet_balance_cents=model.wallet_balance_cents - cents)
            .execution_options(synchronize_session=False)
        )
        self._expire_balance(model, pk)
        return result.rowcount == 1

    def _increment(self, model, pk, amount):
        cents = to_cents(amount)
        result = self.session.execute(
            update(model)
            .where(model.id == pk)
            .values(wallet_balance_cents=model.wallet_balance_cents + cents)
            .execution_options(synchronize_session=False)
        )
        self._expire_balance(model, pk)
        return result.rowcount == 1

    def _expire_balance(self, model, pk):
        instance = self.session.get(model, pk)
        if instance is not None:
            self.session.expire(instance, ['wallet_balance_cents'])

    # ============================================================
    # WRITES
    # ============================================================

    def add(self, instance):
        self.session.add(instance)
        return instance

    def delete(self, instance):
        self.session.delete(instance)

    def flush(self):
        self.session.flush()

    def clear_house_for_users(self, house_id):
        """Detach every user still pointing at house_id."""
        self.session.execute(
            update(User)
            .where(User.house_id == house_id)
            .values(house_id=None, role=UserRole.TENANT.value)
            .execution_options(synchronize_session='fetch')
        )

    def delete_bills_for_house(self, house_id):
        """Delete the house's bills; payment rows go with them."""
        bills = self.bills_for_house(house_id)
        for bill in bills:
            self.session.delete(bill)
        return len(bills)

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
