"""
WhatsApp front end for the bookkeeping ledger.

- webhook: FastAPI app receiving Meta webhooks
- router: turns one message into ledger changes and a reply
- whatsapp / transcription: outbound delivery and Groq speech-to-text
"""

from .router import CommandRouter
from .whatsapp import InboundMessage, WhatsAppClient, WhatsAppError, parse_inbound
from .transcription import GroqTranscriber

__all__ = [
    "CommandRouter",
    "InboundMessage",
    "WhatsAppClient",
    "WhatsAppError",
    "parse_inbound",
    "GroqTranscriber",
]
