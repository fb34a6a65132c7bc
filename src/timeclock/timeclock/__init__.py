"""Timeclock package.

GPS-verified shift tracking organized by feature modules (geofence, shifts,
stale, requests, ...) with a thin Flask controller layer over service and
repository layers.
"""
