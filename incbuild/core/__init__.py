# SPDX-License-Identifier: MIT
"""Core build-graph engine: discovery, mapping, rules and dependencies."""
