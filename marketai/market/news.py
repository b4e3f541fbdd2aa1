"""News sources for decision context."""

from abc import ABC, abstractmethod

from marketai.db.store import LedgerStore
from marketai.models import NewsArticle


class NewsSource(ABC):
    """Abstract source of recent market news."""

    @abstractmethod
    def get_latest_news(self, limit: int) -> list[NewsArticle]:
        """Get the most recent news articles, newest first.

        Args:
            limit: Maximum number of articles.

        Returns:
            List of articles.
        """
        pass


class StoreNewsSource(NewsSource):
    """News read from the ledger database's market_events table."""

    def __init__(self, store: LedgerStore, window_hours: int = 3):
        self._store = store
        self.window_hours = window_hours

    def get_latest_news(self, limit: int) -> list[NewsArticle]:
        return self._store.get_latest_news(window_hours=self.window_hours, limit=limit)
