"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Authority is derived from the house record (admin_id and sub-admin flags),
never from the User.role display label.

NEVER bypass these checks!
"""

from enum import Enum

from houseshare.services.errors import AuthorizationError


class HouseRole(Enum):
    ADMIN = 'admin'
    SUB_ADMIN = 'sub_admin'
    TENANT = 'tenant'
    NONE = 'none'


# ============================================================
# ROLE DERIVATION
# ============================================================

def role_of(house, user_id):
    """Role of user_id in house: admin > sub-admin > tenant > none"""
    if house is None or user_id is None:
        return HouseRole.NONE
    if house.admin_id == user_id:
        return HouseRole.ADMIN
    membership = house.get_membership(user_id)
    if membership is None:
        return HouseRole.NONE
    if membership.is_sub_admin:
        return HouseRole.SUB_ADMIN
    return HouseRole.TENANT


def is_house_admin(house, user_id):
    return role_of(house, user_id) == HouseRole.ADMIN


def is_house_manager(house, user_id):
    """Admin or sub-admin"""
    return role_of(house, user_id) in (HouseRole.ADMIN, HouseRole.SUB_ADMIN)


def is_house_member(house, user_id):
    return role_of(house, user_id) != HouseRole.NONE


# ============================================================
# ADMIN-ONLY ACTIONS
# ============================================================

def can_manage_members(house, user_id):
    """Add / remove / promote / demote tenants"""
    if not is_house_admin(house, user_id):
        return False, "Not authorized"
    return True, None


def can_delete_house(house, user_id):
    if not is_house_admin(house, user_id):
        return False, "Only house admin can delete the house"
    return True, None


def can_withdraw_house_funds(house, user_id):
    if not is_house_admin(house, user_id):
        return False, "Only house admin can withdraw funds"
    return True, None


def can_update_chat_settings(house, user_id):
    if not is_house_admin(house, user_id):
        return False, "Only house admin can update chat settings"
    return True, None


def can_transfer_admin(house, from_user_id, to_user_id):
    """
    Requirements:
    - From user must be current admin
    - To user must be another tenant of the house
    """
    if not is_house_admin(house, from_user_id):
        return False, "You are not the admin of this house"

    if from_user_id == to_user_id:
        return False, "You are already the admin"

    if not house.is_tenant(to_user_id):
        return False, "Target user is not a member of this house"

    return True, None


# ============================================================
# ADMIN OR SUB-ADMIN ACTIONS
# ============================================================

def can_create_bill(house, user_id):
    if not is_house_manager(house, user_id):
        return False, "Not authorized"
    return True, None


def can_post_message(house, user_id, announcement=False):
    """
    Posting rules consumed by the chat feature.

    - Announcements: admin or sub-admin, and only while enabled
    - Messages: anyone when allow_everyone_to_post, else admin or sub-admin
    """
    if not is_house_member(house, user_id):
        return False, "You are not a member of this house"

    elevated = is_house_manager(house, user_id)

    if announcement:
        if not house.announcements_enabled:
            return False, "Announcements are disabled in this house"
        if not elevated:
            return False, "Only admins can post announcements"
        return True, None

    if not house.allow_everyone_to_post and not elevated:
        return False, "Only admins can post messages in this house"

    return True, None


# ============================================================
# HELPER FUNCTION: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_create_bill, house, user_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
    return True
