#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Slack incoming-webhook notification for problematic machines."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .errors import NotificationError

log = logging.getLogger(__name__)

PROBLEM_HEADER = "These Machines are problematic:"


def problem_message(alert_text: str) -> str:
    return f"{PROBLEM_HEADER}\n{alert_text}"


def slack_payload(message: str, channel: Optional[str] = None, color: str = "danger") -> Dict[str, Any]:
    payload: Dict[str, Any] = {"attachments": [{"color": color, "text": message, "fallback": message}]}
    if channel:
        payload["channel"] = channel
    return payload


def send_slack(
    webhook_url: str,
    message: str,
    channel: Optional[str] = None,
    color: str = "danger",
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
) -> None:
    poster = session or requests
    try:
        r = poster.post(webhook_url, json=slack_payload(message, channel, color), timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        raise NotificationError(f"slack webhook failed: {e}") from e
    log.info("sent problem alert to slack%s", f" ({channel})" if channel else "")


def notify_problems(alert_text: str, webhook_url: Optional[str], channel: Optional[str] = None,
                    session: Optional[requests.Session] = None) -> bool:
    """Send only when there is something to report; returns whether a message went out."""
    if not alert_text or not webhook_url:
        return False
    send_slack(webhook_url, problem_message(alert_text), channel=channel, session=session)
    return True
