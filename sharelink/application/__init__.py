"""
Application layer

Services orchestrating the domain for the HTTP API and background tasks.
"""
