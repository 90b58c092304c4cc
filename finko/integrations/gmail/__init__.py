# Gmail integration
from finko.integrations.gmail.auth import GmailAuth
from finko.integrations.gmail.client import GmailClient
from finko.integrations.gmail.dto import GmailMessage, MessageMetadata, WatchResult

__all__ = ["GmailAuth", "GmailClient", "GmailMessage", "MessageMetadata", "WatchResult"]
