"""User account service with token login and pair subscriptions."""

__version__ = "0.1.0"
