"""
WALLET ROUTES
=============

Uses wallet_service for all financial operations.
All operations are atomic.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from houseshare.routes import get_gateway, get_payload, get_store
from houseshare.services.wallet_service import (
    top_up, house_withdraw, get_balance, get_house_balance, list_transactions
)

wallet_bp = Blueprint('wallet', __name__, url_prefix='/api/wallet')


# ============== TOP UP (gateway verified) ==============
@wallet_bp.route('/topup', methods=['POST'])
@login_required
def topup():
    data = get_payload()
    balance, transaction = top_up(get_store(), get_gateway(), current_user.id, data.get('ref'))
    return jsonify({
        'msg': 'Top-up successful',
        'balance': balance,
        'transaction': transaction.to_dict()
    })


# ============== BALANCES ==============
@wallet_bp.route('/balance')
@login_required
def balance():
    return jsonify({'balance': get_balance(get_store(), current_user.id)})


@wallet_bp.route('/house-balance')
@login_required
def house_balance():
    return jsonify({'balance': get_house_balance(get_store(), current_user.id)})


# ============== HOUSE WITHDRAWAL (Admin) ==============
@wallet_bp.route('/house-withdraw', methods=['POST'])
@login_required
def withdraw():
    data = get_payload()
    balance, transaction = house_withdraw(
        get_store(),
        actor_id=current_user.id,
        house_id=current_user.house_id,
        amount=data.get('amount'),
        bank_details=data.get('bank_details')
    )
    return jsonify({
        'msg': 'Withdrawal initiated successfully',
        'balance': balance,
        'transaction': transaction.to_dict()
    })


# ============== TRANSACTION HISTORY ==============
@wallet_bp.route('/transactions')
@login_required
def transactions():
    type_filter = request.args.get('type', None)
    entries = list_transactions(get_store(), current_user.id, type_filter)
    return jsonify({'transactions': [t.to_dict() for t in entries]})
