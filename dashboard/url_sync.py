"""Keep the page URL and the filter store in step."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from dashboard.state import FilterState, FilterStore, InitFromUrl
from dashboard.url_state import decode_filter_params, encode_query_string

logger = logging.getLogger("crashmap.url_sync")


class FilterUrlSync:
    """Two one-way bridges between the URL and a :class:`FilterStore`.

    ``start()`` applies the incoming URL to the store once. After that every
    state change is encoded and handed to ``replace_url``. The first write
    pass runs against the store's pre-decode defaults and is skipped, so a
    deep link is never replaced by the default view.
    """

    def __init__(
        self,
        store: FilterStore,
        read_params: Callable[[], Mapping | str | None],
        replace_url: Callable[[str], None],
    ):
        self.store = store
        self._read_params = read_params
        self._replace_url = replace_url
        self._skip_first_sync = True
        self._last_written: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self.sync)
        self.sync(self.store.state)
        self.store.dispatch(InitFromUrl(decode_filter_params(self._read_params())))

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def sync(self, state: FilterState) -> None:
        if self._skip_first_sync:
            self._skip_first_sync = False
            return
        search = encode_query_string(state)
        if search == self._last_written:
            return
        self._last_written = search
        logger.debug("url <- %r", search)
        self._replace_url(search)
