# nav_engine/app/controllers/search.py
import logging
from functools import partial

from nav_engine.app.events import FetchCompleted, SearchFailed, SearchRequested, SearchResults
from nav_engine.app.protocols import Geocoder, RequestSink

logger = logging.getLogger(__name__)


class SearchHandler:
    """Free-text destination search. Only the newest query's answer is surfaced."""

    def __init__(self, requests: RequestSink, geocoder: Geocoder):
        self.requests = requests
        self.geocoder = geocoder
        self.token = 0
        self._queries: dict[int, str] = {}

    def on_search_requested(self, ev: SearchRequested):
        self.token += 1
        self._queries = {self.token: ev.text}
        self.requests.submit(
            partial(self.geocoder.geocode, ev.text), purpose="geocode", token=self.token
        )
        return []

    def on_fetch_completed(self, ev: FetchCompleted):
        if ev.purpose != "geocode":
            return []
        text = self._queries.pop(ev.token, None)
        if text is None or ev.token != self.token:
            logger.debug(
                "stale_result", extra={"extra": {"purpose": "geocode", "token": ev.token}}
            )
            return []
        if not ev.ok:
            reason = getattr(ev.error, "reason", "error")
            return [SearchFailed(t=ev.t, text=text, reason=reason)]
        return [SearchResults(t=ev.t, text=text, candidates=list(ev.result))]
