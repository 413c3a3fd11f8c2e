"""Messaging webhook.

Receives page callbacks from the messaging platform. Each callback is
signature-verified, flattened into individual messages, run back through
the local request pipeline, and answered via the Send API.
"""
