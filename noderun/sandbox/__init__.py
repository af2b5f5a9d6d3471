"""Reproduction of the node service's systemd hardening for one plugin run."""
