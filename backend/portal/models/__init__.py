from .auth import User, SessionRecord, ROLES, ROLE_ADMIN, ROLE_CLIENT
from .activity import Activity
from .integrations import ApiConnection
from .portal import Client, Project, Invoice, PROJECT_STATUSES, INVOICE_STATUSES

__all__ = [
    'User', 'SessionRecord', 'ROLES', 'ROLE_ADMIN', 'ROLE_CLIENT',
    'Activity',
    'ApiConnection',
    'Client', 'Project', 'Invoice', 'PROJECT_STATUSES', 'INVOICE_STATUSES',
]
