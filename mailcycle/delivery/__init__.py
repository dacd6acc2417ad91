"""Outbound notification model and non-Gmail senders."""
