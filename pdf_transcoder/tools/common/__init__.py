"""Shared plumbing for transcoder tools."""
