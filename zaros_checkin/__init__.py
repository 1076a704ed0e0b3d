"""Core modules for zaros-checkin.

This package contains the Zaros API client, the claim state machine and the
daemon/status entry points.

Recommended invocation:
- python -m zaros_checkin.checkin_daemon
- python -m zaros_checkin.heartbeat
"""
