"""
HOUSE MANAGEMENT ROUTES
=======================
Thin JSON layer over membership_service.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user

from houseshare.routes import get_payload, get_store, require_int
from houseshare.services.membership_service import (
    create_house, join_house, manage_member, leave_house, delete_house,
    transfer_admin, update_chat_settings, get_house_for_user
)

houses_bp = Blueprint('houses', __name__, url_prefix='/api/house')


# ============== CREATE NEW HOUSE ==============
@houses_bp.route('/create', methods=['POST'])
@login_required
def create_house_route():
    data = get_payload()
    house = create_house(
        get_store(),
        name=data.get('name'),
        creator_id=current_user.id,
        max_attempts=current_app.config['JOIN_CODE_ATTEMPTS']
    )
    return jsonify({'house': house.to_dict(resolve=True), 'join_code': house.join_code}), 201


# ============== JOIN HOUSE ==============
@houses_bp.route('/join', methods=['POST'])
@login_required
def join_house_route():
    data = get_payload()
    house = join_house(get_store(), data.get('code'), current_user.id)
    return jsonify({'house': house.to_dict(resolve=True)})


# ============== VIEW MY HOUSE ==============
@houses_bp.route('/info')
@houses_bp.route('/my-house')
@login_required
def house_info():
    house = get_house_for_user(get_store(), current_user.id)
    return jsonify({'house': house.to_dict(resolve=True) if house else None})


# ============== MANAGE MEMBERS (Admin) ==============
@houses_bp.route('/manage', methods=['PUT'])
@login_required
def manage_route():
    data = get_payload()
    house = manage_member(
        get_store(),
        actor_id=current_user.id,
        action=data.get('action'),
        target_user_id=require_int(data, 'user_id')
    )
    return jsonify({'house': house.to_dict(resolve=True)})


# ============== TRANSFER ADMIN ==============
@houses_bp.route('/transfer-admin', methods=['POST'])
@login_required
def transfer_admin_route():
    data = get_payload()
    house = transfer_admin(get_store(), current_user.id, require_int(data, 'user_id'))
    return jsonify({'house': house.to_dict(resolve=True)})


# ============== CHAT SETTINGS (Admin) ==============
@houses_bp.route('/chat-settings', methods=['PUT'])
@login_required
def chat_settings_route():
    data = get_payload()
    settings = update_chat_settings(
        get_store(),
        current_user.id,
        allow_everyone_to_post=data.get('allow_everyone_to_post'),
        announcements_enabled=data.get('announcements_enabled')
    )
    return jsonify({'msg': 'Chat settings updated successfully', 'chat_settings': settings})


# ============== LEAVE HOUSE ==============
@houses_bp.route('/leave', methods=['POST'])
@login_required
def leave_route():
    leave_house(get_store(), current_user.id)
    return jsonify({'msg': 'Successfully left the house'})


# ============== DELETE HOUSE (Admin) ==============
@houses_bp.route('/delete', methods=['DELETE'])
@login_required
def delete_route():
    delete_house(get_store(), current_user.id)
    return jsonify({'msg': 'House deleted successfully'})
