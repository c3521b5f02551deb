"""Models for the application."""

from .subscription_record import build_subscription_table
