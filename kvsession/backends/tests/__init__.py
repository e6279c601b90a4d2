"""Tests for :mod:`kvsession.backends`."""
