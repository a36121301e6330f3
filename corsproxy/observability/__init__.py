"""Instrumentation for the proxy.

A health ``Stream`` hands out one ``Job`` per request and fans job events out to
sinks: structlog JSON lines on stdout plus an in-memory metrics snapshot.
"""
