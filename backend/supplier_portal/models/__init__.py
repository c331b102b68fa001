from .auth import User, SessionToken, USER_ROLES, USER_STATUSES
from .supplier import Supplier, SupplierStatus, INITIAL_STATUS
from .registration import RegistrationToken

__all__ = [
    'User', 'SessionToken', 'USER_ROLES', 'USER_STATUSES',
    'Supplier', 'SupplierStatus', 'INITIAL_STATUS',
    'RegistrationToken',
]
