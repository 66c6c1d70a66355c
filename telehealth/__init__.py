"""Telehealth appointment booking API."""
