"""Monitoring application for the HealthPulse backend.

This package contains models, serializers, services, views, WebSocket
consumers and route registrations implementing the API contract the
dashboard front-end expects.
"""
