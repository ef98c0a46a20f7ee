from inboxpilot.models.booking import Booking
from inboxpilot.models.business import Business
from inboxpilot.models.business_integration import BusinessIntegration
from inboxpilot.models.conversation_thread import ConversationThread
from inboxpilot.models.customer import Customer
from inboxpilot.models.flyer_send_log import FlyerSendLog
from inboxpilot.models.lead import Lead
from inboxpilot.models.media_asset import MediaAsset
from inboxpilot.models.message import Message
from inboxpilot.models.note import Note
from inboxpilot.models.processed_event import ProcessedEvent
from inboxpilot.models.service import Service
from inboxpilot.models.thread_message import ThreadMessage
from inboxpilot.models.usage_counter import UsageCounter

__all__ = [
    "Business",
    "Service",
    "BusinessIntegration",
    "ConversationThread",
    "ThreadMessage",
    "Message",
    "ProcessedEvent",
    "Customer",
    "Lead",
    "Note",
    "Booking",
    "UsageCounter",
    "MediaAsset",
    "FlyerSendLog",
]
