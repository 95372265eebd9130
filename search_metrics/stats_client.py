"""
Client for the host's index statistics API.

Queries ``GET {url}/{index}/_stats/docs`` on an Elasticsearch-compatible node
and returns the primaries document count.
"""

import logging
from typing import Optional
from urllib.parse import quote

import requests

from .exceptions import QueryFailure

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:9200"


class IndexStatsClient:
    """
    Synchronous, timeout-bounded statistics queries.

    Every call issues its own request, so a single client can be shared by
    gauges read concurrently from the reporter thread.
    """

    def __init__(self, url: str = DEFAULT_URL, timeout: float = 10.0,
                 username: Optional[str] = None, password: Optional[str] = None):
        self.url = url.rstrip('/')
        self.timeout = timeout
        self.auth = (username, password or '') if username else None

    def doc_count(self, index: str) -> int:
        """
        Return the number of documents in the primaries of ``index``.

        Raises:
            QueryFailure: On transport errors, non-2xx responses, or an
                unexpected response body.
        """
        endpoint = f"{self.url}/{quote(index, safe=',*')}/_stats/docs"
        try:
            resp = requests.get(endpoint, auth=self.auth, timeout=self.timeout)
            resp.raise_for_status()
            stats = resp.json()
        except requests.RequestException as e:
            raise QueryFailure(f"Stats query for [{index}] failed: {e}") from e
        except ValueError as e:
            raise QueryFailure(f"Stats response for [{index}] is not JSON: {e}") from e

        try:
            count = stats['_all']['primaries']['docs']['count']
        except (KeyError, TypeError) as e:
            raise QueryFailure(f"Stats response for [{index}] has no document count") from e

        logger.debug(f"Index [{index}] document count: {count}")
        return int(count)
