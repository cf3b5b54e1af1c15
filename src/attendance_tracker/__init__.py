"""School attendance tracker.

This package is organized by feature modules (students, attendance, settings,
audit) with a thin Flask controller layer on top of service/repository layers.
"""
