"""
MEMBERSHIP SERVICE
==================

Handles:
- Creating houses (with unique join codes)
- Joining / leaving houses
- Admin member management (add, remove, promote, demote)
- Admin transfer and chat settings
- House deletion (cascades to bills)

Every mutation loads the house with a row lock so concurrent
membership changes on one house are serialized.
"""

import secrets

import structlog
from sqlalchemy.exc import IntegrityError

from houseshare.models import House, HouseMember, MemberAction, UserRole
from houseshare.services.authorization_service import (
    can_manage_members, can_delete_house, can_transfer_admin,
    can_update_chat_settings, require_authorization
)
from houseshare.services.errors import (
    ServiceError, NotFoundError, ValidationError, InvalidCodeError,
    AlreadyMemberError, AlreadyInHouseError, JoinCodeExhaustedError
)

log = structlog.get_logger(__name__)

JOIN_CODE_MIN = 100000
JOIN_CODE_MAX = 999999
DEFAULT_JOIN_CODE_ATTEMPTS = 10


class MembershipError(ServiceError):
    """Base exception for membership operations"""
    code = 'server_error'
    status_code = 500


# ============================================================
# HELPERS
# ============================================================

def _get_user(store, user_id):
    user = store.get_user(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _get_actor_house(store, actor_id, lock=True):
    """The actor's current house, re-read from the store."""
    actor = _get_user(store, actor_id)
    house = store.get_house(actor.house_id, lock=lock)
    if not house:
        raise NotFoundError("House not found")
    return house


def generate_join_code(store, max_attempts=DEFAULT_JOIN_CODE_ATTEMPTS):
    """
    6-digit numeric code, uniform in [100000, 999999].
    Regenerated on collision; gives up after max_attempts.
    """
    for _ in range(max(1, max_attempts)):
        code = str(JOIN_CODE_MIN + secrets.randbelow(JOIN_CODE_MAX - JOIN_CODE_MIN + 1))
        if not store.join_code_exists(code):
            return code
    raise JoinCodeExhaustedError(
        f"Could not generate a unique join code after {max_attempts} attempts"
    )


def _delete_house_records(store, house):
    """Explicit cascade: detach tenants, drop bills, drop the house."""
    store.clear_house_for_users(house.id)
    bill_count = store.delete_bills_for_house(house.id)
    store.flush()
    store.delete(house)
    return bill_count


# ============================================================
# CREATE HOUSE
# ============================================================

def _insert_house(store, name, creator_id, max_attempts):
    """
    Insert the house under a fresh join code.
    A code taken by a concurrent insert fails the unique constraint;
    that attempt is rolled back and a new code drawn.
    """
    for _ in range(max(1, max_attempts)):
        join_code = generate_join_code(store, max_attempts)
        house = House(name=name, admin_id=creator_id, join_code=join_code)
        house.members.append(HouseMember(user_id=creator_id))
        store.add(house)
        try:
            store.flush()
            return house
        except IntegrityError:
            store.rollback()
            log.warning("join_code_collision", join_code=join_code)
    raise JoinCodeExhaustedError(
        f"Could not generate a unique join code after {max_attempts} attempts"
    )


def create_house(store, name, creator_id, max_attempts=DEFAULT_JOIN_CODE_ATTEMPTS):
    """Create a house; the creator becomes admin and sole tenant."""
    try:
        name = (name or '').strip()
        if not name:
            raise ValidationError("House name is required")

        creator = _get_user(store, creator_id)
        if creator.house_id is not None:
            raise AlreadyInHouseError("You already belong to a house. Leave it first.")

        house = _insert_house(store, name, creator.id, max_attempts)

        creator.house_id = house.id
        creator.role = UserRole.ADMIN.value

        store.commit()

        log.info("house_created", house_id=house.id, admin_id=creator.id)
        return house

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to create house: {str(e)}") from e


# ============================================================
# JOIN HOUSE
# ============================================================

def join_house(store, code, user_id):
    """Join the house whose join code matches exactly."""
    try:
        code = str(code or '').strip()
        if not code:
            raise ValidationError("Join code is required")

        user = _get_user(store, user_id)

        house = store.get_house_by_code(code, lock=True)
        if not house:
            raise InvalidCodeError("Invalid join code")

        if house.is_tenant(user.id):
            raise AlreadyMemberError("Already in house")

        if user.house_id is not None and user.house_id != house.id:
            raise AlreadyInHouseError("You already belong to another house. Leave it first.")

        house.members.append(HouseMember(user_id=user.id))
        user.house_id = house.id
        user.role = UserRole.TENANT.value

        store.commit()

        log.info("house_joined", house_id=house.id, user_id=user.id)
        return house

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to join house: {str(e)}") from e


# ============================================================
# MANAGE MEMBER (Admin action)
# ============================================================

def manage_member(store, actor_id, action, target_user_id):
    """
    Admin-only tenant management.

    - add: append target (no-op if already a tenant)
    - remove: drop target from tenants and sub-admins
    - promote: make a tenant sub-admin (no-op if already)
    - demote: drop sub-admin flag
    The admin cannot be removed or promoted through this path.
    """
    try:
        try:
            action = MemberAction(action)
        except ValueError:
            raise ValidationError(f"Unknown action '{action}'")

        house = _get_actor_house(store, actor_id)
        require_authorization(can_manage_members, house, actor_id)

        target = store.get_user(target_user_id)
        if not target:
            raise NotFoundError("User not found")

        membership = house.get_membership(target.id)

        if action == MemberAction.ADD:
            if membership is None:
                if target.house_id is not None and target.house_id != house.id:
                    raise AlreadyInHouseError("User already belongs to another house")
                house.members.append(HouseMember(user_id=target.id))
                target.house_id = house.id
                target.role = UserRole.TENANT.value

        elif action == MemberAction.REMOVE:
            if target.id == house.admin_id:
                raise ValidationError(
                    "The admin cannot be removed. Transfer admin rights or leave the house instead."
                )
            if membership is None:
                raise NotFoundError("User is not a member of this house")
            house.members.remove(membership)
            target.house_id = None
            target.role = UserRole.TENANT.value

        elif action == MemberAction.PROMOTE:
            if target.id == house.admin_id:
                raise ValidationError("The admin cannot be made a sub-admin")
            if membership is None:
                raise NotFoundError("User is not a member of this house")
            membership.is_sub_admin = True
            target.role = UserRole.SUB_ADMIN.value

        elif action == MemberAction.DEMOTE:
            if membership is not None and membership.is_sub_admin:
                membership.is_sub_admin = False
                target.role = UserRole.TENANT.value

        store.commit()

        log.info("member_managed", house_id=house.id, actor_id=actor_id,
                 action=action.value, target_id=target.id)
        return house

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to manage member: {str(e)}") from e


# ============================================================
# LEAVE HOUSE
# ============================================================

def leave_house(store, user_id):
    """
    Member leaves their house.

    If the admin leaves and tenants remain, the first remaining tenant
    (join order) becomes admin. If nobody remains, the house is deleted.
    """
    try:
        user = _get_user(store, user_id)
        house = store.get_house(user.house_id, lock=True)
        if not house:
            raise NotFoundError("House not found")

        house_id = house.id
        membership = house.get_membership(user.id)
        if membership is not None:
            house.members.remove(membership)

        house_deleted = False
        if house.admin_id == user.id:
            if house.members:
                successor = house.members[0]
                successor.is_sub_admin = False
                house.admin_id = successor.user_id
                if successor.user is not None:
                    successor.user.role = UserRole.ADMIN.value
                log.info("admin_transferred", house_id=house.id,
                         from_user_id=user.id, to_user_id=successor.user_id)
            else:
                _delete_house_records(store, house)
                house_deleted = True

        user.house_id = None
        user.role = UserRole.TENANT.value

        store.commit()

        log.info("house_left", house_id=house_id, user_id=user_id, house_deleted=house_deleted)
        return True

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to leave house: {str(e)}") from e


# ============================================================
# DELETE HOUSE (Admin action)
# ============================================================

def delete_house(store, actor_id):
    """Admin deletes the house, its bills, and detaches every tenant."""
    try:
        house = _get_actor_house(store, actor_id)
        require_authorization(can_delete_house, house, actor_id)

        house_id = house.id
        bill_count = _delete_house_records(store, house)

        store.commit()

        log.info("house_deleted", house_id=house_id, actor_id=actor_id, bills_deleted=bill_count)
        return True

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to delete house: {str(e)}") from e


# ============================================================
# TRANSFER ADMIN RIGHTS
# ============================================================

def transfer_admin(store, actor_id, target_user_id):
    """Hand admin rights to another tenant; the old admin stays a tenant."""
    try:
        house = _get_actor_house(store, actor_id)
        require_authorization(can_transfer_admin, house, actor_id, target_user_id)

        target_membership = house.get_membership(target_user_id)
        target_membership.is_sub_admin = False
        house.admin_id = target_user_id

        actor = store.get_user(actor_id)
        actor.role = UserRole.TENANT.value
        if target_membership.user is not None:
            target_membership.user.role = UserRole.ADMIN.value

        store.commit()

        log.info("admin_transferred", house_id=house.id,
                 from_user_id=actor_id, to_user_id=target_user_id)
        return house

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to transfer admin: {str(e)}") from e


# ============================================================
# CHAT SETTINGS (Admin action)
# ============================================================

def update_chat_settings(store, actor_id, allow_everyone_to_post=None, announcements_enabled=None):
    """Only boolean values are applied; anything else leaves the setting as is."""
    try:
        house = _get_actor_house(store, actor_id)
        require_authorization(can_update_chat_settings, house, actor_id)

        if isinstance(allow_everyone_to_post, bool):
            house.allow_everyone_to_post = allow_everyone_to_post
        if isinstance(announcements_enabled, bool):
            house.announcements_enabled = announcements_enabled

        store.commit()

        log.info("chat_settings_updated", house_id=house.id, **house.chat_settings)
        return house.chat_settings

    except ServiceError:
        store.rollback()
        raise
    except Exception as e:
        store.rollback()
        raise MembershipError(f"Failed to update chat settings: {str(e)}") from e


# ============================================================
# READS
# ============================================================

def get_house_for_user(store, user_id):
    """The user's house, or None when they are not in one."""
    user = _get_user(store, user_id)
    return store.get_house(user.house_id)
