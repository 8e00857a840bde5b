"""Race passages fetched from a remote quote API.

The provider never raises: any failure falls back to a fixed passage so room
creation is never blocked by the quote service.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Tuple[float, float] = (3.0, 5.0)  # connect, read

# Typographic punctuation mapped onto what a keyboard produces
_REPLACEMENTS = {
    '‘': "'", '’': "'", '“': '"', '”': '"',
    '–': '-', '—': '-', '…': '...',
    '′': "'", '″': '"', '‴': "'''",
    '‵': "'", '‶': '"', '‷': "'''",
    '´': "'", '`': "'",
}


@dataclass(frozen=True)
class Passage:
    content: str
    author: str


DEFAULT_PASSAGE = Passage(
    content='The quick brown fox jumps over the lazy dog. This is a simple typing test quote.',
    author='Default',
)


def clean_quote(text: str) -> str:
    for src, dst in _REPLACEMENTS.items():
        text = text.replace(src, dst)
    return ' '.join(text.split())


class PassageProvider:
    def __init__(self, url: Optional[str], *, timeout=DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 fallback: Passage = DEFAULT_PASSAGE) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or self._build_session()
        self.fallback = fallback

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=2,
            backoff_factor=0.3,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(['GET']),
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        return session

    def fetch(self) -> Passage:
        if not self.url:
            return self.fallback
        try:
            response = self.session.get(
                self.url, headers={'Accept': 'application/json'}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning('[passage-fallback] url=%s error=%s', self.url, exc)
            return self.fallback

        quote = data.get('quote') if isinstance(data, dict) else None
        if not isinstance(quote, str) or not clean_quote(quote):
            logger.warning('[passage-fallback] url=%s error=empty quote', self.url)
            return self.fallback
        author = data.get('author') or 'Unknown'
        return Passage(content=clean_quote(quote), author=str(author))


class StaticPassageProvider:
    """Always hands out the same passage."""

    def __init__(self, passage: Passage = DEFAULT_PASSAGE) -> None:
        self.passage = passage

    def fetch(self) -> Passage:
        return self.passage
