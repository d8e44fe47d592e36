from __future__ import annotations

from .core import Topic


TOPIC_LEDGER = Topic("spelinx.ledger")
TOPIC_REFERRAL = Topic("spelinx.referral")
