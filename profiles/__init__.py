"""Declarative form profiles shipped as YAML package data."""
