"""
Streaming RSS / Atom parser.

Feed it response chunks as they arrive; it yields each item as soon as its
closing tag has been read and then discards the element. Items without an
http(s) link or a parseable date are dropped.
"""

import html
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from cryptosage.schemas.news import NewsArticle

logger = logging.getLogger(__name__)

ITEM_TAGS = {"item", "entry"}
DATE_TAGS = ("pubDate", "date", "published", "updated")
DESCRIPTION_TAGS = ("description", "summary", "encoded", "content")
IMAGE_TAGS = ("content", "thumbnail")

IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")


def local_name(tag: str) -> str:
    """'{http://purl.org/dc/elements/1.1/}date' -> 'date'."""
    return tag.rsplit("}", 1)[-1]


def parse_date(text: Optional[str]) -> Optional[datetime]:
    """RFC 822 (RSS pubDate) or ISO 8601 (Atom, dc:date). Naive dates are taken as UTC."""
    if not text:
        return None
    text = text.strip()

    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def strip_html(text: str) -> str:
    return WHITESPACE_RE.sub(" ", html.unescape(TAG_RE.sub(" ", text))).strip()


def first_img_src(markup: Optional[str]) -> Optional[str]:
    if not markup:
        return None
    match = IMG_SRC_RE.search(markup)
    return match.group(1) if match else None


def _is_http(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


class FeedParser:
    """Incremental parser for one feed document."""

    def __init__(self, source: str):
        self.source = source
        self.failed = False
        self._parser = ET.XMLPullParser(events=("end",))

    def feed(self, data: bytes) -> list[NewsArticle]:
        """Consume a chunk and return the items it completed."""
        if self.failed:
            return []
        try:
            self._parser.feed(data)
        except ET.ParseError as e:
            self._fail(e)
        return self._drain()

    def close(self) -> list[NewsArticle]:
        if self.failed:
            return []
        try:
            self._parser.close()
        except ET.ParseError as e:
            self._fail(e)
        return self._drain()

    def _fail(self, error: ET.ParseError) -> None:
        logger.warning(f"Malformed feed from {self.source}, keeping items parsed so far: {error}")
        self.failed = True

    def _drain(self) -> list[NewsArticle]:
        articles = []
        try:
            for _event, elem in self._parser.read_events():
                if local_name(elem.tag) not in ITEM_TAGS:
                    continue
                article = self.parse_item(elem)
                elem.clear()
                if article is not None:
                    articles.append(article)
        except ET.ParseError as e:
            self._fail(e)
        return articles

    def parse_item(self, item: ET.Element) -> Optional[NewsArticle]:
        children: dict[str, list[ET.Element]] = {}
        for child in item:
            children.setdefault(local_name(child.tag), []).append(child)

        def text_of(*names: str) -> Optional[str]:
            for name in names:
                for elem in children.get(name, []):
                    if elem.text and elem.text.strip():
                        return elem.text.strip()
            return None

        link = self._link(children.get("link", []))
        published_at = parse_date(text_of(*DATE_TAGS))
        if not _is_http(link) or published_at is None:
            return None

        raw_description = text_of(*DESCRIPTION_TAGS)
        title = text_of("title")
        description = strip_html(raw_description) if raw_description else None

        return NewsArticle(
            title=strip_html(title) if title else link,
            description=description or None,
            url=link,
            image_url=self._image(children, raw_description),
            published_at=published_at,
            source=self.source,
        )

    @staticmethod
    def _link(links: list[ET.Element]) -> Optional[str]:
        # RSS: <link>url</link>; Atom: <link rel="alternate" href="url"/>
        for elem in links:
            if elem.text and elem.text.strip():
                return elem.text.strip()
        for elem in links:
            if elem.get("href") and elem.get("rel", "alternate") == "alternate":
                return elem.get("href").strip()
        return None

    @staticmethod
    def _image(children: dict[str, list[ET.Element]], raw_description: Optional[str]) -> Optional[str]:
        for elem in children.get("enclosure", []):
            url = elem.get("url")
            if _is_http(url) and elem.get("type", "image").startswith("image"):
                return url
        for name in IMAGE_TAGS:
            for elem in children.get(name, []):
                url = elem.get("url")
                if _is_http(url):
                    return url
        return first_img_src(raw_description)
