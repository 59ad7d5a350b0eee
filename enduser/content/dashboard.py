"""HTML pages for the admin cache view."""

from datetime import datetime, timezone
from html import escape

from enduser.knowledge.news_cache import CachedData

_STYLE = """
body { font-family: 'Segoe UI', Tahoma, sans-serif; max-width: 1000px; margin: 0 auto;
       padding: 2rem; background: #3f3d7a; color: #fff; }
.container { background: rgba(255, 255, 255, 0.1); border-radius: 20px; padding: 2rem; }
.section { margin: 1.5rem 0; padding: 1rem; background: rgba(0, 0, 0, 0.2); border-radius: 10px; }
.empty { opacity: 0.6; font-style: italic; }
.refresh-btn { display: inline-block; padding: 0.5rem 1rem; background: #fff; color: #3f3d7a;
               border: none; border-radius: 8px; text-decoration: none; cursor: pointer; }
code { background: rgba(0, 0, 0, 0.3); padding: 0 0.3rem; border-radius: 4px; }
"""


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"<title>{escape(title)}</title>\n<style>{_STYLE}</style>\n</head>\n"
        f'<body>\n<div class="container">\n{body}\n</div>\n</body>\n</html>\n'
    )


def _section(heading: str, content: str) -> str:
    if content:
        inner = f"<p>{escape(content)}</p>"
    else:
        inner = '<p class="empty">No data cached</p>'
    return f'<div class="section"><h2>{escape(heading)}</h2>{inner}</div>'


def _format_update(last_update: int) -> str:
    if not last_update:
        return "never"
    updated = datetime.fromtimestamp(last_update / 1000, tz=timezone.utc)
    return updated.strftime("%Y-%m-%d %H:%M:%S UTC")


def render_cache_page(cached: CachedData, journal_stats: str, response_count: int) -> str:
    """Admin overview of cached context data."""
    body = (
        "<h1>GPT Enduser - Cached Data</h1>"
        f"<p>Last update: {escape(_format_update(cached.last_update))} "
        f"({cached.age_hours}h ago)</p>"
        f"<p>Journal: {escape(journal_stats)}</p>"
        f"<p>Mention replies tracked: {response_count}</p>"
        + _section("Crypto", cached.crypto_data)
        + _section("Tech insights", cached.tech_insights)
        + _section("Weather", cached.weather_data)
        + '<form action="/api/cache/refresh" method="POST" style="display: inline;">'
        '<button type="submit" class="refresh-btn">Refresh cache</button></form> '
        '<a href="/api/recent-insights" class="refresh-btn">Recent insights</a>'
        '<div class="section"><h2>Endpoints</h2><ul>'
        "<li><code>/api/cache</code> - View cached data (this page)</li>"
        "<li><code>/api/cache/refresh</code> - Force refresh cache</li>"
        "<li><code>/api/journal</code> - Personal knowledge journal</li>"
        "<li><code>/api/recent-insights</code> - Public learning summary</li>"
        "<li><code>/api/status</code> - Public system status</li>"
        "</ul></div>"
    )
    return _page("GPT Enduser - Cached Data View", body)


def render_refresh_page(cached: CachedData) -> str:
    """Result page after a forced refresh."""
    body = (
        "<h1>Cache refreshed</h1>"
        f"<p>Updated at {escape(_format_update(cached.last_update))}</p>"
        + _section("Crypto", cached.crypto_data)
        + _section("Tech insights", cached.tech_insights)
        + _section("Weather", cached.weather_data)
        + '<a href="/api/cache" class="refresh-btn">Back to cache view</a>'
    )
    return _page("GPT Enduser - Cache Refreshed", body)


def render_refresh_error(error: str) -> str:
    body = (
        "<h1>Cache refresh failed</h1>"
        f"<p>{escape(error)}</p>"
        '<a href="/api/cache" class="refresh-btn">Back to cache view</a>'
    )
    return _page("GPT Enduser - Cache Refresh Failed", body)
