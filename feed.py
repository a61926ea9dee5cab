"""Download the federation XML feed and normalise it into plain dicts.

The normalised shape follows the xml2js ``explicitArray: false`` convention the
upstream consumers were written against:

* the document is ``{root_tag: value}``
* an element with no attributes and no children is just its text
* attributes live under ``"$"``, text next to children under ``"_"``
* a tag seen once is a scalar, a repeated tag becomes a list
"""
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict
from urllib.parse import urlparse

import requests

from config import Settings
from errors import FetchError, ParseError

logger = logging.getLogger(__name__)

ATTRIBUTE_KEY = "$"
TEXT_KEY = "_"


def fetch_feed(settings: Settings) -> str:
    """Return the raw feed body, or raise FetchError."""
    if not settings.feed_url:
        raise FetchError("No feed URL configured (set FEED_URL)")

    # The query string carries the access key, keep it out of the logs
    host = urlparse(settings.feed_url).netloc
    logger.info("Fetching XML feed from %s", host)
    try:
        response = requests.get(
            settings.feed_url,
            headers={"User-Agent": settings.user_agent},
            timeout=settings.request_timeout,
        )
        response.raise_for_status()
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        logger.error("Feed request to %s failed with status %s", host, status)
        raise FetchError(f"Feed request failed with status {status}", status_code=status) from exc
    except requests.RequestException as exc:
        logger.error("Feed request to %s failed: %s", host, type(exc).__name__)
        raise FetchError(f"Feed request failed: {type(exc).__name__}") from exc

    return response.text


def parse_feed(xml_text: str) -> Dict[str, Any]:
    """Parse the feed body into the nested mapping described above."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ParseError(f"Malformed XML feed: {exc}") from exc
    return {_local_name(root.tag): _element_to_value(root)}


def _local_name(tag: str) -> str:
    # "{namespace}event" -> "event"
    return tag.rsplit("}", 1)[-1]


def _element_to_value(element: ET.Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    node: Dict[str, Any] = {}
    if element.attrib:
        node[ATTRIBUTE_KEY] = {_local_name(k): v for k, v in element.attrib.items()}

    for child in children:
        tag = _local_name(child.tag)
        value = _element_to_value(child)
        if tag not in node:
            node[tag] = value
        elif isinstance(node[tag], list):
            node[tag].append(value)
        else:
            node[tag] = [node[tag], value]

    if text:
        node[TEXT_KEY] = text
    return node
