"""Notification events emitted by the review pipeline.

Events carry only identifiers and scores; formatting and delivery belong
to whichever ``Notifier`` the caller wires in.
"""
