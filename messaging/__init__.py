"""Messaging application for the clinic backend.

Staff/patient direct messages stored per channel, the realtime feed that
keeps open conversations current, and role-partitioned notifications.
"""
