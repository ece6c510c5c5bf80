"""User-facing throttle messages.

Templates are passed through ``translate`` before formatting, so an
application can plug in its own catalog::

    messages = ThrottleMessages(translate=gettext.gettext)
"""

from collections.abc import Callable
from dataclasses import dataclass, field


def _identity(text: str) -> str:
    return text


@dataclass(frozen=True, slots=True)
class ThrottleMessages:
    """Message templates for the login form."""

    locked_template: str = "Too many failed login attempts. Try again in {minutes} minutes."
    attempts_left_template: str = "You have {count} tries left."
    suspended_template: str = "Your account has been suspended for {minutes} minutes."
    invalid_password_template: str = "Invalid password."
    unavailable_template: str = "Sign-in is temporarily unavailable. Please try again later."
    translate: Callable[[str], str] = field(default=_identity)

    def locked(self, remaining_seconds: int) -> str:
        # Round up so "0 minutes" is never shown while still locked.
        minutes = max(1, -(-remaining_seconds // 60))
        return self.translate(self.locked_template).format(minutes=minutes)

    def attempts_left(self, count: int) -> str:
        return self.translate(self.attempts_left_template).format(count=count)

    def suspended(self, minutes: int) -> str:
        return self.translate(self.suspended_template).format(minutes=minutes)

    def invalid_password(self) -> str:
        return self.translate(self.invalid_password_template)

    def unavailable(self) -> str:
        return self.translate(self.unavailable_template)
