"""
Contracts (data models).

This folder defines the request/response shapes exchanged with the payment gateway:
- Caller requests per instrument (init, cancel, refund, status, static QR reads)
- The generic {success, code, message, data} gateway response
- The decoded S2S callback payload

Why this exists:
- Keeps wire names (camelCase) in one place
- Prevents "guessing" payload formats in multiple places
- Routes, orchestrator and tests all rely on the same models, not ad-hoc dicts
"""
