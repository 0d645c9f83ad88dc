"""Helpers shared by the client and server layers."""
