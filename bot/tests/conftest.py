from typing import Optional

import pytest

from bot.router import CommandRouter
from bot.whatsapp import WhatsAppError
from ledger.service import LedgerService
from ledger.storage import LedgerDatabase


class FakeMessenger:
    def __init__(self, media: Optional[bytes] = b"OggS...", fail_download: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.media = media
        self.fail_download = fail_download

    async def send_text(self, to: str, text: str) -> bool:
        self.sent.append((to, text))
        return True

    async def download_media(self, media_id: str) -> bytes:
        if self.fail_download:
            raise WhatsAppError(f"Could not download media {media_id}")
        return self.media

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


class FakeTranscriber:
    def __init__(self, text: Optional[str]):
        self.text = text
        self.calls = 0

    async def transcribe(self, audio: bytes) -> Optional[str]:
        self.calls += 1
        return self.text


@pytest.fixture
def database(tmp_path):
    db = LedgerDatabase(str(tmp_path / "bot.db"))
    db.init()
    return db


@pytest.fixture
def ledger(database):
    return LedgerService(database)


@pytest.fixture
def make_router(ledger):
    """Build a router around fakes: make_router(transcript=..., fail_download=...)."""
    def _make(transcript: Optional[str] = None, **messenger_kwargs):
        messenger = FakeMessenger(**messenger_kwargs)
        transcriber = FakeTranscriber(transcript)
        return CommandRouter(ledger, messenger, transcriber), messenger, transcriber
    return _make
