"""
BranchBooks - User Roles

Users are authenticated upstream; only the role travels with each request
and decides how branch scoping applies.
"""

from enum import Enum


class UserRole(str, Enum):
    """Back-office roles."""
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
