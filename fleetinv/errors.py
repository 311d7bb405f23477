#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Exception types shared across the inventory package."""
from __future__ import annotations

from typing import Optional


class InventoryError(RuntimeError):
    """Base class for every error raised by fleetinv."""


class MissingLabelError(InventoryError):
    """A node's label set has no label for a required pattern (arch or os)."""

    def __init__(self, kind: str, node: Optional[str] = None):
        self.kind = kind
        self.node = node
        super().__init__(f"no {kind} label found")

    def for_node(self, node: str) -> "MissingLabelError":
        return MissingLabelError(self.kind, node=node)


class SourceError(InventoryError):
    pass


class TemplateRenderError(InventoryError):
    pass


class OutputError(InventoryError):
    """A report file could not be written."""


class NotificationError(InventoryError):
    pass


class PublishError(InventoryError):
    pass


class ConfigError(InventoryError):
    pass
