"""
Infrastructure layer

Concrete document stores, blob stores, rate-limit storage and schedulers.
Modules are imported directly; this package does not re-export them.
"""
