import pytest

from houseshare.services import membership_service
from houseshare.services.authorization_service import (
    HouseRole, role_of, is_house_manager, can_create_bill, can_delete_house,
    can_manage_members, can_post_message, can_withdraw_house_funds, require_authorization
)
from houseshare.services.errors import AuthorizationError, NotAssignedError


@pytest.fixture
def household(store, make_user, make_house):
    admin, sub, tenant, outsider = (make_user(n) for n in ('Ada', 'Bola', 'Chidi', 'Dayo'))
    house = make_house(admin=admin, tenants=[sub, tenant])
    membership_service.manage_member(store, admin.id, 'promote', sub.id)
    return house, admin, sub, tenant, outsider


def test_role_of(household):
    house, admin, sub, tenant, outsider = household

    assert role_of(house, admin.id) == HouseRole.ADMIN
    assert role_of(house, sub.id) == HouseRole.SUB_ADMIN
    assert role_of(house, tenant.id) == HouseRole.TENANT
    assert role_of(house, outsider.id) == HouseRole.NONE
    assert role_of(None, admin.id) == HouseRole.NONE


def test_role_label_is_not_trusted(store, household):
    house, admin, sub, tenant, outsider = household
    tenant.role = 'admin'
    assert role_of(house, tenant.id) == HouseRole.TENANT
    assert not is_house_manager(house, tenant.id)


def test_bill_creation_rights(household):
    house, admin, sub, tenant, outsider = household

    assert can_create_bill(house, admin.id) == (True, None)
    assert can_create_bill(house, sub.id) == (True, None)
    assert can_create_bill(house, tenant.id) == (False, "Not authorized")
    assert can_create_bill(house, outsider.id)[0] is False


@pytest.mark.parametrize('check', [can_manage_members, can_delete_house, can_withdraw_house_funds])
def test_admin_only_checks(household, check):
    house, admin, sub, tenant, outsider = household

    assert check(house, admin.id)[0] is True
    for user in (sub, tenant, outsider):
        allowed, reason = check(house, user.id)
        assert allowed is False
        assert reason


def test_post_message_rules(household):
    house, admin, sub, tenant, outsider = household

    assert can_post_message(house, tenant.id)[0] is True
    assert can_post_message(house, outsider.id)[0] is False

    house.allow_everyone_to_post = False
    assert can_post_message(house, tenant.id)[0] is False
    assert can_post_message(house, sub.id)[0] is True


def test_announcement_rules(household):
    house, admin, sub, tenant, outsider = household

    assert can_post_message(house, admin.id, announcement=True)[0] is True
    assert can_post_message(house, tenant.id, announcement=True)[0] is False

    house.announcements_enabled = False
    allowed, reason = can_post_message(house, admin.id, announcement=True)
    assert allowed is False
    assert reason == "Announcements are disabled in this house"


def test_require_authorization(household):
    house, admin, sub, tenant, outsider = household

    assert require_authorization(can_delete_house, house, admin.id) is True

    with pytest.raises(AuthorizationError) as exc:
        require_authorization(can_delete_house, house, tenant.id)
    assert exc.value.message == "Only house admin can delete the house"
    assert exc.value.status_code == 403

    with pytest.raises(NotAssignedError):
        require_authorization(can_create_bill, house, tenant.id, error_class=NotAssignedError)
