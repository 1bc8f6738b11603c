from .branches import Branch, BranchAssignment
from .auth import Employee, BranchAccessGrant, RefreshToken
from .security import SecurityEvent, OperatorSwitchLog, PinLockout

__all__ = [
    'Branch', 'BranchAssignment',
    'Employee', 'BranchAccessGrant', 'RefreshToken',
    'SecurityEvent', 'OperatorSwitchLog', 'PinLockout',
]
