"""Rollcall package.

Roster identity resolution and attendance-ledger consistency for an academic
attendance system. Organized by feature modules (classes, students, roster,
bindings, attendance, ...) with a thin Flask controller layer and
service/repository layers underneath.
"""
