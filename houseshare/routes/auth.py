"""
AUTHENTICATION ROUTES
=====================
Session login via Flask-Login; every other route trusts current_user.id.
"""

from flask import Blueprint, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from houseshare.models import User
from houseshare.routes import get_payload, get_store
from houseshare.services.errors import AlreadyInStateError, ValidationError

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_payload()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    # Validation
    if not email or not password:
        raise ValidationError('Email and password are required!')

    if len(password) < 6:
        raise ValidationError('Password must be at least 6 characters!')

    store = get_store()
    if store.get_user_by_email(email):
        raise AlreadyInStateError('Email already registered!')

    new_user = User(name=name or None, email=email)
    new_user.set_password(password)

    store.add(new_user)
    store.commit()

    login_user(new_user)
    return jsonify({'user': new_user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = get_store().get_user_by_email(email)

    if not user or not user.check_password(password):
        return jsonify({'error': 'invalid_credentials', 'msg': 'Invalid email or password!'}), 401

    login_user(user, remember=bool(data.get('remember', False)))
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'msg': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
