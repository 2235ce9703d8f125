"""Inbound Socket.IO payloads.

Each client event has one message type here. Parsing validates required
fields so handlers only ever see well-formed input; anything else raises
PayloadError, which the socket layer reports privately to the sender.
"""

from dataclasses import dataclass
from typing import Optional

from songquiz.models import DEFAULT_COLOR, Track


class PayloadError(ValueError):
    pass


def _text(value, field_name, required=True) -> str:
    if value is None:
        if required:
            raise PayloadError(f'{field_name} is required')
        return ''
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise PayloadError(f'{field_name} must be text')
    text = str(value).strip()
    if required and not text:
        raise PayloadError(f'{field_name} is required')
    return text


def _first(data, *keys):
    for key in keys:
        if data.get(key) not in (None, ''):
            return data.get(key)
    return None


@dataclass(frozen=True)
class JoinMessage:
    name: str
    color: str = DEFAULT_COLOR

    @classmethod
    def parse(cls, data) -> 'JoinMessage':
        # Older clients send the bare name string
        if isinstance(data, str) or data is None:
            return cls(name=(data or '').strip())
        if not isinstance(data, dict):
            raise PayloadError('join payload must be an object')
        name = _text(data.get('name'), 'name', required=False)
        color = _text(data.get('color'), 'color', required=False) or DEFAULT_COLOR
        return cls(name=name, color=color[:32])


@dataclass(frozen=True)
class SubmitSongMessage:
    title: str
    artist: str
    preview_url: str
    artwork_url: str = ''

    @classmethod
    def parse(cls, data) -> 'SubmitSongMessage':
        if not isinstance(data, dict):
            raise PayloadError('song payload must be an object')
        return cls(
            title=_text(_first(data, 'title', 'trackName'), 'title'),
            artist=_text(_first(data, 'artist', 'artistName'), 'artist'),
            preview_url=_text(_first(data, 'previewUrl', 'preview_url'), 'previewUrl'),
            artwork_url=_text(_first(data, 'artworkUrl', 'artwork_url', 'albumArt'), 'artworkUrl', required=False),
        )

    def to_track(self) -> Track:
        return Track(
            title=self.title,
            artist=self.artist,
            preview_url=self.preview_url,
            artwork_url=self.artwork_url,
        )


@dataclass(frozen=True)
class GuessMessage:
    text: str

    @classmethod
    def parse(cls, data, max_length: Optional[int] = None) -> 'GuessMessage':
        raw = data.get('text') if isinstance(data, dict) else data
        text = _text(raw, 'text')
        if max_length:
            text = text[:max_length]
        return cls(text=text)


@dataclass(frozen=True)
class KickMessage:
    target_id: str

    @classmethod
    def parse(cls, data) -> 'KickMessage':
        raw = data.get('targetId') if isinstance(data, dict) else data
        return cls(target_id=_text(raw, 'targetId'))


@dataclass(frozen=True)
class SearchMessage:
    query: str

    @classmethod
    def parse(cls, data) -> 'SearchMessage':
        raw = data.get('query') if isinstance(data, dict) else data
        return cls(query=_text(raw, 'query')[:100])
