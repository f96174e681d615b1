from __future__ import annotations

from typing import Protocol


class Mailer(Protocol):
    """Outbound mail transport. Returns False when delivery failed."""

    def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        ...

    def send_verification_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        ...

    def send_reset_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        ...
