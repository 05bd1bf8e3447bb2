"""
SpecDate Backend — API Routes Package
=======================================

What:  HTTP route handlers; one module per resource.

Route Inventory:
    - auth.py:           register, login, logout, OTP
    - profile.py:        /api/user, /api/profile, /api/users
    - account.py:        /api/account (pause, unpause, delete)
    - specs.py:          specs, likes, applications, pending requests
    - rounds.py:         rounds, answers, eliminations, nudges
    - media.py:          uploads and /api/files
    - notifications.py:  notifications, push token, broadcasting auth
    - health.py:         /health

Routes stay thin: parse the request, call a service, wrap the result in the
success envelope. Business rules live in app/services.
"""
