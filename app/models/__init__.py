# app/models/__init__.py
# Import all models to ensure SQLAlchemy can resolve relationships

from app.db.base_class import Base
from app.models.event import Event
from app.models.membership import Membership
from app.models.notification import Notification
from app.models.audit_log import EventAuditLog
