"""
SERVICE ERRORS
==============

Every failure a service can report to a caller.
Each error carries a machine 'code' and the HTTP status the API maps it to.
"""


class ServiceError(Exception):
    """Base exception for all service operations"""
    code = 'error'
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.code, 'msg': self.message}


class AuthorizationError(ServiceError):
    """Not authorized"""
    code = 'unauthorized'
    status_code = 403


class NotFoundError(ServiceError):
    """Not found"""
    code = 'not_found'
    status_code = 404


class ValidationError(ServiceError):
    """Invalid request"""
    code = 'validation_error'
    status_code = 400


class InvalidCodeError(ServiceError):
    """Invalid join code"""
    code = 'invalid_code'
    status_code = 400


class NotAssignedError(ServiceError):
    """Not assigned to this bill"""
    code = 'not_assigned'
    status_code = 403


# ============================================================
# ALREADY IN STATE
# ============================================================

class AlreadyInStateError(ServiceError):
    """Already done"""
    code = 'already_in_state'
    status_code = 409


class AlreadyMemberError(AlreadyInStateError):
    """Already in house"""
    code = 'already_member'


class AlreadyInHouseError(AlreadyInStateError):
    """User already belongs to a house"""
    code = 'already_in_house'


class AlreadyPaidError(AlreadyInStateError):
    """Already paid"""
    code = 'already_paid'


class DuplicateTransactionError(AlreadyInStateError):
    """Transaction already processed"""
    code = 'duplicate_transaction'


# ============================================================
# FUNDS / PAYMENTS
# ============================================================

class InsufficientFundsError(ServiceError):
    """Insufficient funds"""
    code = 'insufficient_funds'
    status_code = 400


class InsufficientBalanceError(InsufficientFundsError):
    """Insufficient balance"""
    code = 'insufficient_balance'


class InsufficientHouseBalanceError(InsufficientFundsError):
    """Insufficient house balance"""
    code = 'insufficient_house_balance'


class PaymentVerificationFailedError(ServiceError):
    """Payment failed"""
    code = 'payment_verification_failed'
    status_code = 402


class UnsupportedMethodError(ServiceError):
    """Payment method not implemented yet"""
    code = 'unsupported_method'
    status_code = 400


class JoinCodeExhaustedError(ServiceError):
    """Could not generate a unique join code"""
    code = 'join_code_exhausted'
    status_code = 503
