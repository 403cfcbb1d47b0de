from cip25_sync.services.sync.matchers.recency_resolver import RecencyResolver

__all__ = ["RecencyResolver"]
