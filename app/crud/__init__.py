# app/crud/__init__.py

from .crud_audit_log import audit_log
from .crud_event import event
from .crud_membership import membership
from .crud_notification import notification
