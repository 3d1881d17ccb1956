from datetime import datetime
from decimal import Decimal

import pytest

from houseshare.models import Bill, BillPayment
from houseshare.services import bill_service, membership_service, wallet_service
from houseshare.services.errors import (
    AlreadyPaidError, AuthorizationError, InsufficientBalanceError, NotAssignedError,
    NotFoundError, UnsupportedMethodError, ValidationError
)


@pytest.fixture
def household(store, make_user, make_house):
    admin = make_user('Ada')
    sub = make_user('Bola', balance='3000')
    tenant = make_user('Chidi', balance='6000')
    house = make_house(admin=admin, tenants=[sub, tenant])
    membership_service.manage_member(store, admin.id, 'promote', sub.id)
    return house, admin, sub, tenant


@pytest.fixture
def electricity(store, household):
    house, admin, sub, tenant = household
    return bill_service.create_bill(store, admin.id, house.id, 'Electricity', '5000', '2024-12-31')


# ============== CREATE ==============

def test_admin_creates_bill(electricity, household):
    house, admin, sub, tenant = household

    assert electricity.house_id == house.id
    assert electricity.amount == Decimal('5000')
    assert electricity.due_date == datetime(2024, 12, 31)
    assert electricity.assigned_to == 'all'
    assert electricity.target_amount is None
    assert electricity.created_by == admin.id
    assert electricity.payments == []


def test_sub_admin_creates_bill_for_some_tenants(store, household):
    house, admin, sub, tenant = household

    bill = bill_service.create_bill(
        store, sub.id, house.id, 'Internet', '1500.50', '2024-11-30',
        assigned_to=[tenant.id, str(sub.id), tenant.id], target_amount='3001'
    )

    assert bill.assigned_to == [tenant.id, sub.id]
    assert bill.target_amount == Decimal('3001')
    assert bill.is_assigned(tenant.id)
    assert not bill.is_assigned(admin.id)


def test_tenant_cannot_create_bill(store, household):
    house, admin, sub, tenant = household
    with pytest.raises(AuthorizationError):
        bill_service.create_bill(store, tenant.id, house.id, 'Party', '100', '2024-12-31')
    assert bill_service.list_bills(store, house.id) == []


@pytest.mark.parametrize('field, value', [
    ('name', ''),
    ('amount', '0'),
    ('amount', '-10'),
    ('due_date', 'next friday'),
    ('due_date', None),
    ('assigned_to', []),
    ('assigned_to', 'bola'),
    ('assigned_to', [9999]),
    ('target_amount', '-1'),
])
def test_create_bill_validation(store, household, field, value):
    house, admin, sub, tenant = household
    kwargs = dict(name='Water', amount='1000', due_date='2024-12-31')
    kwargs[field] = value
    with pytest.raises(ValidationError):
        bill_service.create_bill(store, admin.id, house.id, **kwargs)


def test_create_bill_without_house(store, household):
    house, admin, sub, tenant = household
    with pytest.raises(AuthorizationError):
        bill_service.create_bill(store, admin.id, None, 'Water', '1000', '2024-12-31')


# ============== LIST ==============

def test_list_bills_latest_due_first(store, household):
    house, admin, sub, tenant = household
    for name, due in [('Rent', '2024-10-01'), ('Water', '2024-12-01'), ('Gas', '2024-11-01')]:
        bill_service.create_bill(store, admin.id, house.id, name, '100', due)

    assert [b.name for b in bill_service.list_bills(store, house.id)] == ['Water', 'Gas', 'Rent']
    assert len(bill_service.list_bills_for_user(store, tenant.id)) == 3


def test_list_bills_without_house(store, make_user):
    assert bill_service.list_bills(store, None) == []
    assert bill_service.list_bills_for_user(store, make_user('Loner').id) == []


# ============== PAY ==============

def test_pay_with_insufficient_balance_changes_nothing(store, household, electricity):
    house, admin, sub, tenant = household

    with pytest.raises(InsufficientBalanceError):
        bill_service.pay_bill(store, sub.id, electricity.id)

    assert wallet_service.get_balance(store, sub.id) == Decimal('3000')
    assert electricity.payment_for(sub.id) is None
    assert wallet_service.get_house_balance(store, admin.id) == Decimal('0')
    assert wallet_service.list_transactions(store, sub.id) == []


def test_pay_from_wallet(store, household, electricity):
    house, admin, sub, tenant = household

    balance, payment = bill_service.pay_bill(store, tenant.id, electricity.id, 'wallet')

    assert balance == Decimal('1000')
    assert wallet_service.get_balance(store, tenant.id) == Decimal('1000')
    assert payment.paid is True
    assert payment.amount_paid == Decimal('5000')
    assert payment.paid_at is not None
    assert electricity.is_paid_by(tenant.id)
    assert wallet_service.get_house_balance(store, admin.id) == Decimal('5000')

    [txn] = wallet_service.list_transactions(store, tenant.id, 'payment')
    assert txn.amount == Decimal('5000')
    assert txn.bill_id == electricity.id
    assert txn.description == 'Payment for Electricity'


def test_pay_twice_debits_once(store, household, electricity):
    house, admin, sub, tenant = household
    bill_service.pay_bill(store, tenant.id, electricity.id)

    with pytest.raises(AlreadyPaidError):
        bill_service.pay_bill(store, tenant.id, electricity.id)

    assert wallet_service.get_balance(store, tenant.id) == Decimal('1000')
    assert len(electricity.payments) == 1
    assert len(wallet_service.list_transactions(store, tenant.id)) == 1


def test_pay_unassigned_bill(store, household):
    house, admin, sub, tenant = household
    bill = bill_service.create_bill(
        store, admin.id, house.id, 'Parking', '500', '2024-12-31', assigned_to=[sub.id]
    )
    with pytest.raises(NotAssignedError):
        bill_service.pay_bill(store, tenant.id, bill.id)
    assert wallet_service.get_balance(store, tenant.id) == Decimal('6000')


def test_pay_bill_of_another_house(store, make_user, make_house, household, electricity):
    outsider = make_user('Dayo', balance='10000')
    make_house(name='Oak Ave', admin=outsider)

    with pytest.raises(NotFoundError):
        bill_service.pay_bill(store, outsider.id, electricity.id)
    with pytest.raises(NotFoundError):
        bill_service.pay_bill(store, outsider.id, 9999)


def test_pay_with_gateway_not_supported(store, household, electricity):
    house, admin, sub, tenant = household
    with pytest.raises(UnsupportedMethodError):
        bill_service.pay_bill(store, tenant.id, electricity.id, 'gateway')
    assert wallet_service.get_balance(store, tenant.id) == Decimal('6000')


def test_pay_with_unknown_method(store, household, electricity):
    house, admin, sub, tenant = household
    with pytest.raises(ValidationError):
        bill_service.pay_bill(store, tenant.id, electricity.id, 'cash')


def test_bill_summary_for_viewer(store, household, electricity):
    house, admin, sub, tenant = household
    bill_service.pay_bill(store, tenant.id, electricity.id)

    summary = electricity.to_dict(viewer_id=tenant.id)

    assert summary['paid_count'] == 1
    assert summary['total_collected'] == Decimal('5000')
    assert summary['paid_by_me'] is True
    assert summary['assigned_to_me'] is True
    assert summary['payments'][0]['tenant']['id'] == tenant.id
    assert electricity.to_dict(viewer_id=sub.id)['paid_by_me'] is False


def test_pay_in_cents_is_exact(store, make_user, make_house, gateway):
    admin = make_user('Ada')
    tenant = make_user('Bola')
    house = make_house(admin=admin, tenants=[tenant])
    gateway.register('ref-30', '0.30')
    wallet_service.top_up(store, gateway, tenant.id, 'ref-30')
    small = bill_service.create_bill(store, admin.id, house.id, 'Stamps', '0.10', '2024-12-01')
    large = bill_service.create_bill(store, admin.id, house.id, 'Tape', '0.20', '2024-12-02')

    assert bill_service.pay_bill(store, tenant.id, small.id)[0] == Decimal('0.20')
    assert bill_service.pay_bill(store, tenant.id, large.id)[0] == Decimal('0')

    assert wallet_service.get_house_balance(store, admin.id) == Decimal('0.30')
    balance, _ = wallet_service.house_withdraw(
        store, admin.id, house.id, '0.30',
        {'account_name': 'Ada', 'account_number': '0123456789'}
    )
    assert balance == Decimal('0')


# ============== CONCURRENT PAYMENTS ==============

def test_second_payment_for_same_tenant_rejected_by_unique_row(store, household, electricity,
                                                               monkeypatch):
    house, admin, sub, tenant = household
    bill_service.pay_bill(store, tenant.id, electricity.id)

    # A second caller that read the bill before the first payment committed
    monkeypatch.setattr(Bill, 'payment_for', lambda self, user_id: None)
    with pytest.raises(AlreadyPaidError):
        bill_service.pay_bill(store, tenant.id, electricity.id)
    monkeypatch.undo()

    rows = store.session.query(BillPayment).filter_by(bill_id=electricity.id).all()
    assert len(rows) == 1
    assert wallet_service.get_balance(store, tenant.id) == Decimal('1000')
    assert wallet_service.get_house_balance(store, admin.id) == Decimal('5000')
    assert len(wallet_service.list_transactions(store, tenant.id, 'payment')) == 1


def test_payments_exceeding_balance_cannot_both_succeed(store, household):
    house, admin, sub, tenant = household
    first, second = (
        bill_service.create_bill(store, admin.id, house.id, name, '2000', '2024-12-31',
                                 assigned_to=[sub.id])
        for name in ('Gas', 'Cleaning')
    )

    bill_service.pay_bill(store, sub.id, first.id)
    with pytest.raises(InsufficientBalanceError):
        bill_service.pay_bill(store, sub.id, second.id)

    assert wallet_service.get_balance(store, sub.id) == Decimal('1000')
    assert second.payment_for(sub.id) is None
    assert len(wallet_service.list_transactions(store, sub.id)) == 1
    assert wallet_service.get_house_balance(store, admin.id) == Decimal('2000')
