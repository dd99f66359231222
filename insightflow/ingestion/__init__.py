from insightflow.ingestion.feed_parser import FeedEntry, parse_feed
from insightflow.ingestion.fetcher import ContentFetcher, FeedFetchResult, FetchError
from insightflow.ingestion.text import content_hash, extract_text

__all__ = [
    "ContentFetcher",
    "FeedEntry",
    "FeedFetchResult",
    "FetchError",
    "content_hash",
    "extract_text",
    "parse_feed",
]
