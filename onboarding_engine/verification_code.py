from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from .collaborators import NotificationService
from .exceptions import CodeIncompleteError


@dataclass(frozen=True)
class CodeInputSignal:
    """Outcome of a keystroke: whether it was accepted and which slot should take focus."""

    accepted: bool
    focus_index: int | None = None


class VerificationCodeEntry:
    """Segmented one-time-code input with one digit per slot."""

    def __init__(
        self,
        length: int = 6,
        digits: Iterable[str] | None = None,
        *,
        notifier: NotificationService | None = None,
        email: str = "",
    ) -> None:
        self.length = length
        self._digits = [""] * length
        for index, digit in enumerate(list(digits or [])[:length]):
            self._digits[index] = digit if _is_digit(digit) else ""
        self.notifier = notifier
        self.email = email
        self.resend_count = 0
        self.logger = structlog.get_logger("verification_code_entry")

    @property
    def digits(self) -> tuple[str, ...]:
        return tuple(self._digits)

    def set_digit(self, index: int, value: str) -> CodeInputSignal:
        self._check_index(index)
        if value and not _is_digit(value):
            return CodeInputSignal(accepted=False)
        self._digits[index] = value
        if value and index < self.length - 1:
            return CodeInputSignal(accepted=True, focus_index=index + 1)
        return CodeInputSignal(accepted=True)

    def on_backspace(self, index: int) -> CodeInputSignal:
        self._check_index(index)
        if self._digits[index]:
            self._digits[index] = ""
            return CodeInputSignal(accepted=True)
        if index > 0:
            return CodeInputSignal(accepted=True, focus_index=index - 1)
        return CodeInputSignal(accepted=True)

    def paste(self, text: str, start: int = 0) -> CodeInputSignal:
        self._check_index(start)
        digits = [char for char in text if not char.isspace()]
        if not digits or not all(_is_digit(char) for char in digits):
            return CodeInputSignal(accepted=False)
        last = start
        for offset, digit in enumerate(digits[: self.length - start]):
            last = start + offset
            self._digits[last] = digit
        return CodeInputSignal(accepted=True, focus_index=min(last + 1, self.length - 1))

    def is_complete(self) -> bool:
        return all(self._digits)

    def require_complete(self) -> str:
        if not self.is_complete():
            missing = [index for index, digit in enumerate(self._digits) if not digit]
            raise CodeIncompleteError(f"Verification code slots {missing} are empty")
        return "".join(self._digits)

    def clear(self) -> None:
        self._digits = [""] * self.length

    async def resend(self) -> None:
        """Ask the notification service for a fresh code. Entered digits are kept."""
        self.resend_count += 1
        self.logger.info("verification_code_resend", resend_count=self.resend_count)
        if self.notifier is not None:
            await self.notifier.send_verification_code(self.email)

    def to_group(self) -> dict[str, Any]:
        return {"digits": list(self._digits)}

    @classmethod
    def from_group(cls, group: Mapping[str, Any], length: int = 6, **kwargs: Any) -> VerificationCodeEntry:
        return cls(length, group.get("digits"), **kwargs)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.length:
            raise IndexError(f"Code slot {index} is out of range 0..{self.length - 1}")


def _is_digit(value: str) -> bool:
    return len(value) == 1 and value in "0123456789"
