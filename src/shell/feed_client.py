"""Feed Client - Imperative Shell.

This module handles HTTP communication with the USGS Atom summary feeds
and parsing of the returned documents. All I/O is contained here;
normalization of entries is in the core module.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any

import feedparser
import requests


logger = logging.getLogger(__name__)


# Default timeout for feed requests (seconds)
DEFAULT_TIMEOUT = 30

GEORSS_NS = "http://www.georss.org/georss"


class FeedParseError(Exception):
    """Raised when a feed document cannot be parsed."""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def geo_points(body: bytes) -> list[str | None]:
    """Raw georss:point text of each entry or item, in document order.

    feedparser keeps only the coordinate pair of a point, not the third
    (magnitude) component. Returns an empty list if the document is not
    well-formed XML.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return []

    points: list[str | None] = []
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        if _local_name(element.tag) not in ("entry", "item"):
            continue
        point = element.find(f"{{{GEORSS_NS}}}point")
        text = point.text.strip() if point is not None and point.text else ""
        points.append(text or None)
    return points


class FeedClient:
    """Client for fetching and parsing earthquake feeds.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT) -> None:
        """Initialize feed client.

        Args:
            timeout: Request timeout in seconds
        """
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        """Fetch a raw feed document.

        This method performs HTTP I/O.

        Args:
            url: Feed URL

        Returns:
            Response body

        Raises:
            requests.RequestException: If the request fails
        """
        logger.debug("Fetching feed %s", url)

        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()

        return response.content

    def parse(self, body: bytes) -> list[dict[str, Any]]:
        """Parse a feed document into raw entries, newest first.

        Args:
            body: Feed document

        Returns:
            List of entry dicts (possibly empty)

        Raises:
            FeedParseError: If the document is malformed and yields no entries
        """
        parsed = feedparser.parse(body)
        entries = [dict(entry) for entry in parsed.entries]

        if parsed.bozo and not entries:
            raise FeedParseError(f"Invalid feed document: {parsed.get('bozo_exception')}")

        points = geo_points(body)
        if len(points) == len(entries):
            for entry, point in zip(entries, points):
                if point:
                    entry["georss_point"] = point

        return entries

    def fetch_entries(self, url: str) -> list[dict[str, Any]]:
        """Fetch and parse a feed.

        Returns:
            List of entry dicts
        """
        entries = self.parse(self.fetch(url))
        logger.debug("Found %d entries in %s", len(entries), url)
        return entries
