"""Campus Attendance package.

This package is organized by feature modules (geofence, attendance, classes,
users, ...) with a thin Flask controller layer on top of service/repository
layers.
"""
