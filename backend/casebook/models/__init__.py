from .auth import Employee, EmployeePermission, SessionToken
from .security import SecurityEvent
from .customers import Customer, HouseholdMember, HouseholdIncome, CustomerAudit
from .visits import Visit, Voucher
from .settings import Setting

__all__ = [
    'Employee', 'EmployeePermission', 'SessionToken', 'SecurityEvent',
    'Customer', 'HouseholdMember', 'HouseholdIncome', 'CustomerAudit',
    'Visit', 'Voucher',
    'Setting',
]
