"""HireBuddy referral rewards service."""

__version__ = "1.0.0"
