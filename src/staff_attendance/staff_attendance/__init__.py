"""Staff Attendance package.

This package is organized by feature modules (tokens, attendance, users, ...)
with a thin Flask controller layer and service/repository layers underneath.
"""
