from datetime import timezone, tzinfo
from typing import Optional, Protocol

import structlog
from fastapi.concurrency import run_in_threadpool

from ledger.models import EntrySource, HistoryEntry
from ledger.service import LedgerService
from parsing import CommandKind, classify, extract_entry, format_amount

from .whatsapp import InboundMessage

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    'Envie: "Cliente — serviço — valor". Ex: "João — troca de óleo — 120".\n'
    'Comandos: "hist" ou "hist João" para ver o histórico.'
)
NOTHING_FOUND_TEXT = "Sem lançamentos encontrados para esse filtro."
NOT_UNDERSTOOD_TEXT = 'Não entendi. Use algo como:\n"João — troca de óleo — 120"'
NOT_UNDERSTOOD_AUDIO_TEXT = (
    'Não entendi seu áudio. Fale algo como: "Cliente João, troca de óleo, 120 reais".'
)
AUDIO_RECEIVED_TEXT = "Recebi seu áudio, processando..."
ERROR_TEXT = "Erro ao processar sua mensagem. Tente novamente."


class Messenger(Protocol):
    async def send_text(self, to: str, text: str) -> bool: ...

    async def download_media(self, media_id: str) -> bytes: ...


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes) -> Optional[str]: ...


def format_confirmation(client: str, item: str, amount_cents: int) -> str:
    return f"{client} | {item} | {format_amount(amount_cents)}"


def format_history_line(entry: HistoryEntry, tz: tzinfo = timezone.utc) -> str:
    day = entry.date.astimezone(tz).strftime("%d/%m")
    return f"{day} · {entry.client} · {entry.item} · {format_amount(entry.amount_cents)}"


class CommandRouter:
    """
    Turns one inbound message into ledger changes and a reply.

    respond() and respond_to_entry() are synchronous and do the bookkeeping;
    handle() is the background task scheduled by the webhook and owns all
    network I/O and failure containment.
    """

    def __init__(self, ledger: LedgerService, messenger: Messenger,
                 transcriber: Optional[Transcriber] = None, tz: tzinfo = timezone.utc):
        self.ledger = ledger
        self.messenger = messenger
        self.transcriber = transcriber
        self.tz = tz

    def respond(self, sender: str, text: str, source: EntrySource = EntrySource.TEXT) -> str:
        command = classify(text)

        if command.kind == CommandKind.HELP:
            return HELP_TEXT

        if command.kind == CommandKind.HISTORY:
            return self.respond_to_history(sender, command.argument)

        return self.respond_to_entry(sender, command.argument, source)

    def respond_to_history(self, sender: str, client_filter: Optional[str] = None) -> str:
        entries = self.ledger.query_history(sender, client_filter)
        if not entries:
            return NOTHING_FOUND_TEXT
        return "\n".join(format_history_line(e, self.tz) for e in entries)

    def respond_to_entry(self, sender: str, text: str, source: EntrySource = EntrySource.TEXT) -> str:
        parsed = extract_entry(text)
        if parsed is None:
            return NOT_UNDERSTOOD_AUDIO_TEXT if source == EntrySource.AUDIO else NOT_UNDERSTOOD_TEXT

        self.ledger.record_entry(sender, parsed.client, parsed.item, parsed.amount_cents, source)
        return format_confirmation(parsed.client, parsed.item, parsed.amount_cents)

    async def handle(self, message: InboundMessage) -> None:
        log = logger.bind(sender=message.sender, message_id=message.message_id)
        try:
            if message.type == "text":
                body = (message.text or "").strip()
                log.info("text_received", body=body)
                reply = await run_in_threadpool(self.respond, message.sender, body)
            elif message.type == "audio":
                log.info("audio_received", media_id=message.media_id)
                reply = await self._handle_audio(message)
            else:
                log.info("message_ignored", type=message.type)
                return
        except Exception:
            log.exception("message_failed")
            reply = ERROR_TEXT

        try:
            await self.messenger.send_text(message.sender, reply)
        except Exception:
            log.exception("reply_failed")

    async def _handle_audio(self, message: InboundMessage) -> str:
        await self.messenger.send_text(message.sender, AUDIO_RECEIVED_TEXT)

        text = await self._transcribe(message)
        if not text:
            return NOT_UNDERSTOOD_AUDIO_TEXT

        logger.info("audio_transcribed", sender=message.sender, text=text)
        return await run_in_threadpool(self.respond_to_entry, message.sender, text, EntrySource.AUDIO)

    async def _transcribe(self, message: InboundMessage) -> Optional[str]:
        if not self.transcriber or not message.media_id:
            return None
        try:
            audio = await self.messenger.download_media(message.media_id)
        except Exception as e:
            logger.warning("media_download_failed", sender=message.sender, error=str(e))
            return None

        try:
            return await self.transcriber.transcribe(audio)
        except Exception:
            logger.exception("transcription_failed", sender=message.sender)
            return None
