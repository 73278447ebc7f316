# Middleware package init
"""
EggTrack Backend — Middleware Package
======================================

Request order:
    [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → route

Rate limiting runs first so rejected secret guesses cost nothing else; the
request id is set before the access log line is written.
"""
