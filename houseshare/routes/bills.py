"""
BILL ROUTES
===========
Uses bill_service for all operations.
"""

from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from houseshare.models import ASSIGNED_TO_ALL, PaymentMethod
from houseshare.routes import get_payload, get_store, require_int
from houseshare.services.bill_service import create_bill, list_bills_for_user, pay_bill

bills_bp = Blueprint('bills', __name__, url_prefix='/api/bill')


# ============== CREATE BILL (Admin / Sub-admin) ==============
@bills_bp.route('/create', methods=['POST'])
@login_required
def create_bill_route():
    data = get_payload()
    bill = create_bill(
        get_store(),
        actor_id=current_user.id,
        house_id=current_user.house_id,
        name=data.get('name'),
        amount=data.get('amount'),
        due_date=data.get('due_date'),
        assigned_to=data.get('assigned_to') or ASSIGNED_TO_ALL,
        target_amount=data.get('target_amount')
    )
    return jsonify({'bill': bill.to_dict(viewer_id=current_user.id)}), 201


# ============== LIST MY HOUSE'S BILLS ==============
@bills_bp.route('/list')
@bills_bp.route('/my-bills')
@login_required
def list_bills_route():
    bills = list_bills_for_user(get_store(), current_user.id)
    return jsonify({'bills': [b.to_dict(viewer_id=current_user.id) for b in bills]})


# ============== PAY BILL ==============
@bills_bp.route('/pay', methods=['POST'])
@login_required
def pay_bill_route():
    data = get_payload()
    balance, payment = pay_bill(
        get_store(),
        payer_id=current_user.id,
        bill_id=require_int(data, 'bill_id'),
        method=data.get('method') or PaymentMethod.WALLET.value
    )
    return jsonify({'msg': 'Payment successful', 'balance': balance, 'payment': payment.to_dict()})
