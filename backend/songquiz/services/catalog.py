"""Song catalog lookups against the iTunes search API."""

import logging
from dataclasses import dataclass
from typing import List

import requests


logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = 'https://itunes.apple.com/search'


@dataclass(frozen=True)
class CatalogTrack:
    title: str
    artist: str
    preview_url: str
    artwork_url: str = ''

    def to_dict(self):
        return {
            'title': self.title,
            'artist': self.artist,
            'previewUrl': self.preview_url,
            'artworkUrl': self.artwork_url,
        }


class SongCatalog:
    def __init__(self, search_url: str = DEFAULT_SEARCH_URL, limit: int = 5, timeout: float = 5, country: str = 'US'):
        self.search_url = search_url
        self.limit = limit
        self.timeout = timeout
        self.country = country

    @classmethod
    def from_config(cls, config) -> 'SongCatalog':
        return cls(
            search_url=config.get('CATALOG_URL', DEFAULT_SEARCH_URL),
            limit=int(config.get('CATALOG_LIMIT', 5)),
            timeout=float(config.get('CATALOG_TIMEOUT_SEC', 5)),
            country=config.get('CATALOG_COUNTRY', 'US'),
        )

    def search(self, query: str) -> List[CatalogTrack]:
        """Return up to `limit` playable tracks; any failure yields an empty list."""
        query = (query or '').strip()
        if not query:
            return []
        params = {
            'term': query,
            'media': 'music',
            'entity': 'song',
            'limit': self.limit,
            'country': self.country,
        }
        logger.info(f"[catalog-request] url={self.search_url} query={query!r}")
        try:
            response = requests.get(self.search_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(f"[catalog-error] query={query!r} error={exc}")
            return []
        return self._parse(payload)

    def _parse(self, payload) -> List[CatalogTrack]:
        results = payload.get('results') if isinstance(payload, dict) else None
        tracks = []
        for item in results or []:
            if not isinstance(item, dict):
                continue
            title = item.get('trackName')
            artist = item.get('artistName')
            preview = item.get('previewUrl')
            # Unplayable without a preview
            if not (title and artist and preview):
                continue
            tracks.append(CatalogTrack(
                title=title,
                artist=artist,
                preview_url=preview,
                artwork_url=item.get('artworkUrl100') or '',
            ))
            if len(tracks) >= self.limit:
                break
        return tracks
