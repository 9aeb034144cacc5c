"""
NewsAI - Feed Sources
======================
RSS / Atom feeds grouped by category.  The grouping is what assigns a
category to every ingested article, so a feed must live under exactly
one key.

Extend this map as new sources are added to the knowledge base.
"""

FEED_SOURCES: dict[str, list[str]] = {
    "world": [
        "https://feeds.bbci.co.uk/news/world/rss.xml",
        "https://rss.cnn.com/rss/edition_world.rss",
        "https://www.theguardian.com/world/rss",
        "https://rss.nytimes.com/services/xml/rss/nyt/World.xml",
    ],
    "politics": [
        "https://feeds.bbci.co.uk/news/politics/rss.xml",
        "https://rss.cnn.com/rss/cnn_allpolitics.rss",
        "https://www.theguardian.com/politics/rss",
        "https://rss.nytimes.com/services/xml/rss/nyt/Politics.xml",
    ],
    "technology": [
        "https://www.theverge.com/rss/index.xml",
        "https://feeds.arstechnica.com/arstechnica/index",
        "https://www.engadget.com/rss.xml",
        "https://techcrunch.com/feed/",
        "https://www.wired.com/feed/rss",
        "https://rss.nytimes.com/services/xml/rss/nyt/Technology.xml",
    ],
    "business": [
        "https://www.cnbc.com/id/100003114/device/rss/rss.html",
        "https://rss.nytimes.com/services/xml/rss/nyt/Business.xml",
    ],
    "sports": [
        "https://www.espn.com/espn/rss/news",
        "https://feeds.bbci.co.uk/sport/rss.xml",
        "https://rss.nytimes.com/services/xml/rss/nyt/Sports.xml",
    ],
    "crypto": [
        "https://cointelegraph.com/rss",
        "https://www.coindesk.com/arc/outboundfeeds/rss/",
        "https://decrypt.co/feed",
    ],
    "ai_science": [
        "https://www.technologyreview.com/feed/",
        "https://venturebeat.com/category/ai/feed/",
    ],
}
