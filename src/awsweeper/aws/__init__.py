"""AWS session, credential and error helpers."""
