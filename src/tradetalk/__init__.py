"""tradetalk - conversational context and intent resolution engine for WhatsApp."""

__version__ = "0.1.0"
