"""
Backend package for the school portal.

This package provides a FastAPI application serving the portal's HTML pages
and the news, calendar and auth APIs on top of a shared MongoDB handle. It can
run as a long-lived listener or be exported to an on-demand host.
"""
