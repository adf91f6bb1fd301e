from models.base import Base
from models.user import User
from models.organization import Organization
from models.company import Company
from models.program import Program
from models.application import Application
from models.application_status_history import ApplicationStatusHistory
from models.document import Document
from models.message import Message
from models.notification import Notification, NotificationPreference

__all__ = [
	"Base",
	"User",
	"Organization",
	"Company",
	"Program",
	"Application",
	"ApplicationStatusHistory",
	"Document",
	"Message",
	"Notification",
	"NotificationPreference",
]
