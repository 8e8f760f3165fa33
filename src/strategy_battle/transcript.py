"""
Shared transcript collaborator and the public view derived from it.
"""
import re
from typing import List

from .directives import SECRET_PATTERN
from .models import TranscriptMessage

# Any remaining 【秘密指示...】 span, e.g. one missing its "|" separator.
# Like SECRET_PATTERN it only closes on the fullwidth 】.
PRIVATE_MARKER = re.compile(r"【\s*秘密指示[^】]*】")
REDACTED_PLACEHOLDER = "【私密指令已隐藏】"

DEFAULT_CONTEXT_LIMIT = 30


class InMemoryTranscript:
    """
    Append-only transcript.

    Hosts with their own chat surface subclass this and override
    ``on_append`` to make messages visible; the stored messages are never
    mutated or removed.
    """

    def __init__(self):
        self._messages: List[TranscriptMessage] = []

    def append(self, speaker: str, text: str) -> TranscriptMessage:
        message = TranscriptMessage(speaker=speaker, text=text)
        self._messages.append(message)
        self.on_append(message)
        return message

    def on_append(self, message: TranscriptMessage) -> None:
        pass

    def messages(self) -> List[TranscriptMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


def redact(text: str) -> str:
    """Replace private-instruction markers with a neutral placeholder"""
    text = SECRET_PATTERN.sub(REDACTED_PLACEHOLDER, text)
    return PRIVATE_MARKER.sub(REDACTED_PLACEHOLDER, text)


class TranscriptViewBuilder:
    """
    Builds the public context every agent and the director see.

    Redaction happens here, at read time. The raw transcript still holds
    the director's full text, so any other surface reading it directly
    sees the secrets.
    """

    def __init__(self, transcript: InMemoryTranscript, default_limit: int = DEFAULT_CONTEXT_LIMIT):
        self.transcript = transcript
        self.default_limit = default_limit

    def build_public_context(self, limit: int | None = None) -> str:
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return ""

        recent = self.transcript.messages()[-limit:]
        return "\n".join(f"{m.speaker}: {redact(m.text)}" for m in recent)
