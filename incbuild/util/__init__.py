# SPDX-License-Identifier: MIT
"""Utility helpers for incbuild."""
