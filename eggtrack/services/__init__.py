# Services package init
"""
EggTrack Backend — Services Layer
==================================

What:  Business logic between the routes (HTTP) and the storage backends.

Service Inventory:
    - EntryStore:      whole-document read/append/delete over a DocumentBackend
    - EggIdAllocator:  sequential Egg-<N> ids and the manual counter reset
    - WebhookService:  Notion payload → "Name|Cage" → stored Entry
    - qr_service:      deterministic QR code PNGs
    - label_service:   single-label PDF and its HTML fallback
    - sheet_service:   ordered multi-label sheets (PNG and PDF)

Routes get these from app.state through eggtrack.dependencies.
"""
