"""
Domain layer

Pure business rules for file records, expiry and rate limiting.
Infrastructure concerns are reached only through the interfaces declared here.
"""
