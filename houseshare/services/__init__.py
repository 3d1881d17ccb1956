"""
Services Package
================

Business logic layer for HouseShare.

All membership, bill and wallet operations are handled here.
Every service function takes a Store (the persistence port) first.
Routes should call these services, not manipulate models directly.
"""

from houseshare.services.errors import (
    ServiceError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    InvalidCodeError,
    NotAssignedError,
    AlreadyInStateError,
    AlreadyMemberError,
    AlreadyInHouseError,
    AlreadyPaidError,
    DuplicateTransactionError,
    InsufficientFundsError,
    InsufficientBalanceError,
    InsufficientHouseBalanceError,
    PaymentVerificationFailedError,
    UnsupportedMethodError,
    JoinCodeExhaustedError
)

from houseshare.services.authorization_service import (
    HouseRole,
    role_of,
    is_house_admin,
    is_house_manager,
    is_house_member,
    can_create_bill,
    can_manage_members,
    can_delete_house,
    can_withdraw_house_funds,
    can_update_chat_settings,
    can_transfer_admin,
    can_post_message,
    require_authorization
)

from houseshare.services.wallet_service import (
    debit,
    top_up,
    house_withdraw,
    get_balance,
    get_house_balance,
    list_transactions,
    parse_amount,
    WalletError
)

from houseshare.services.membership_service import (
    create_house,
    join_house,
    manage_member,
    leave_house,
    delete_house,
    transfer_admin,
    update_chat_settings,
    get_house_for_user,
    generate_join_code,
    MembershipError
)

from houseshare.services.bill_service import (
    create_bill,
    list_bills,
    list_bills_for_user,
    pay_bill,
    BillError
)
