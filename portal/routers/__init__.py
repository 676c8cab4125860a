"""Resource routers mounted under ``/api``."""

from portal.routers import auth, calendar, news

MOUNTS = (
    ("/api/news", news.router),
    ("/api/calendar", calendar.router),
    ("/api/auth", auth.router),
)
