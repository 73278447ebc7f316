# Routes package init
"""
EggTrack Backend — API Routes Package
======================================

Route Inventory:
    - entries.py:     GET /api/data, POST|GET /api/add, POST /api/delete
    - egg_number.py:  GET|POST /api/egg-number
    - artifacts.py:   GET /api/qr, GET /api/pdf, GET /api/sheet
    - webhook.py:     POST /api/webhook
    - health.py:      GET /health
    - pages.py:       GET /

Routes stay thin: parse the request, check the secret, call a service,
shape the response. Errors are raised and left to the handlers in main.py.
"""
