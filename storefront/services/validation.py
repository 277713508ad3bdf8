"""
Rule-based form field validation

Two modes: immediate validation runs the rules straight through, progressive
validation waits for input to settle and debounces the async rule per field.
Input problems come back as messages, never as exceptions.
"""

import asyncio
import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.core.config import settings
from storefront.schemas.checkout import FieldValidationResult
from storefront.utils.validators import validate_email_address

logger = logging.getLogger(__name__)

CustomRule = Callable[[str], Optional[str]]
AsyncRule = Callable[[str], Awaitable[Optional[str]]]

DEFAULT_MESSAGES = {
    "required": "{field} is required",
    "email": "Please enter a valid email address",
    "min_length": "Minimum {min_length} characters required",
    "max_length": "Maximum {max_length} characters allowed",
    "pattern": "Invalid format",
    "custom": "Invalid input",
}

WARNING_MESSAGE = "Looks a little short. Double-check this field."
SUGGESTION_MESSAGE = "Check the required format before submitting."


class ValidationMode(str, enum.Enum):
    ON_BLUR = "on_blur"
    ON_CHANGE = "on_change"
    ON_SUBMIT = "on_submit"
    PROGRESSIVE = "progressive"


class FieldRule(BaseModel):
    """
    Validation rule for one field

    Bad configuration (negative or crossed lengths, an uncompilable pattern,
    a non-callable custom or async rule) fails here with a ValidationError.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    required: bool = False
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[re.Pattern] = None
    email: bool = False
    custom: Optional[CustomRule] = None
    async_rule: Optional[AsyncRule] = Field(None, alias="async")

    @model_validator(mode="after")
    def check_length_bounds(self) -> "FieldRule":
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError(
                f"min_length ({self.min_length}) exceeds max_length ({self.max_length})"
            )
        return self


@dataclass
class _Ticket:
    """Generation marker for a progressive validation call"""
    generation: int
    future: asyncio.Future


def field_label(name: str) -> str:
    """Human label for a field name: postal_code and postalCode become 'Postal code'"""
    words = re.sub(r"(?<!^)([A-Z])", r" \1", name).replace("_", " ").split()
    label = " ".join(words).lower()
    return label[:1].upper() + label[1:]


class ValidationEngine:
    """Validates named fields against their rules and tracks error state"""

    def __init__(
        self,
        rules: Dict[str, Union[FieldRule, Dict[str, Any]]],
        mode: ValidationMode = ValidationMode.ON_BLUR,
        messages: Optional[Dict[str, str]] = None,
        settle_delay: Optional[float] = None,
        debounce_delay: Optional[float] = None,
        announce_errors: bool = True,
    ):
        self.rules: Dict[str, FieldRule] = {
            name: rule if isinstance(rule, FieldRule) else FieldRule.model_validate(rule)
            for name, rule in rules.items()
        }
        self.mode = ValidationMode(mode)
        self.messages = {**DEFAULT_MESSAGES, **(messages or {})}
        self.settle_delay = (
            settings.VALIDATION_SETTLE_DELAY if settle_delay is None else settle_delay
        )
        self.debounce_delay = (
            settings.ASYNC_VALIDATION_DEBOUNCE if debounce_delay is None else debounce_delay
        )
        self.announce_errors = announce_errors

        self.errors: Dict[str, Optional[str]] = {}
        self.touched: Set[str] = set()
        self.announcements: List[str] = []

        self._tickets: Dict[str, _Ticket] = {}
        self._pending_async: Dict[str, asyncio.Task] = {}
        self._feedback_seq: Dict[str, int] = {}
        self._validating = 0

    # Messages

    def _message(self, kind: str, name: str, rule: FieldRule) -> str:
        return self.messages[kind].format(
            field=field_label(name),
            min_length=rule.min_length,
            max_length=rule.max_length,
        )

    def _announce(self, message: str) -> None:
        if self.announce_errors:
            self.announcements.append(message)
            logger.debug(f"Announced: {message}")

    # Rule evaluation

    def _check_format(self, name: str, value: str, rule: FieldRule) -> Optional[str]:
        """Format rules in fixed order; first failure wins"""
        if rule.email:
            try:
                validate_email_address(value)
            except ValueError:
                return self._message("email", name, rule)

        if rule.min_length and len(value) < rule.min_length:
            return self._message("min_length", name, rule)

        if rule.max_length is not None and len(value) > rule.max_length:
            return self._message("max_length", name, rule)

        if rule.pattern is not None and not rule.pattern.search(value):
            return self._message("pattern", name, rule)

        if rule.custom is not None:
            custom_error = rule.custom(value)
            if custom_error:
                return custom_error

        return None

    async def _run_async_rule(self, value: str, rule: FieldRule) -> Optional[str]:
        self._validating += 1
        try:
            return await rule.async_rule(value) or None
        finally:
            self._validating -= 1

    async def validate_field(self, name: str, value: str) -> Optional[str]:
        """Validate immediately; fields without a rule are always valid"""
        rule = self.rules.get(name)
        if rule is None:
            return None

        if not value.strip():
            return self._message("required", name, rule) if rule.required else None

        format_error = self._check_format(name, value, rule)
        if format_error:
            return format_error

        if rule.async_rule is not None:
            return await self._run_async_rule(value, rule)

        return None

    # Progressive validation

    def _issue_ticket(self, name: str) -> _Ticket:
        previous = self._tickets.get(name)
        generation = previous.generation + 1 if previous else 1
        ticket = _Ticket(generation, asyncio.get_running_loop().create_future())
        self._tickets[name] = ticket
        self._cancel_pending(name)
        return ticket

    def _is_current(self, name: str, ticket: _Ticket) -> bool:
        return self._tickets.get(name) is ticket

    def _cancel_pending(self, name: str) -> None:
        pending = self._pending_async.pop(name, None)
        if pending is not None and not pending.done():
            pending.cancel()

    async def _follow_latest(self, name: str) -> Optional[str]:
        """Resolve a superseded call to the result of the newest call"""
        while True:
            latest = self._tickets[name]
            try:
                result = await asyncio.shield(latest.future)
            except asyncio.CancelledError:
                if not latest.future.cancelled():
                    raise
                # Newest call was abandoned before producing a result
                if self._tickets[name] is latest:
                    return None
                continue
            if self._tickets[name] is latest:
                return result

    async def _debounced_async(self, value: str, rule: FieldRule) -> Optional[str]:
        await asyncio.sleep(self.debounce_delay)
        return await self._run_async_rule(value, rule)

    async def _progressive(self, name: str, value: str, rule: FieldRule, ticket: _Ticket) -> Optional[str]:
        if not value.strip():
            return self._message("required", name, rule) if rule.required else None

        await asyncio.sleep(self.settle_delay)
        if not self._is_current(name, ticket):
            return await self._follow_latest(name)

        format_error = self._check_format(name, value, rule)
        if format_error or rule.async_rule is None:
            return format_error

        self._cancel_pending(name)
        task = asyncio.ensure_future(self._debounced_async(value, rule))
        self._pending_async[name] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._is_current(name, ticket):
                return await self._follow_latest(name)
            raise
        finally:
            if self._pending_async.get(name) is task:
                del self._pending_async[name]

    async def validate_field_progressive(self, name: str, value: str) -> Optional[str]:
        """
        Validate after input settles, debouncing the async rule

        Each call supersedes earlier calls for the same field. A superseded
        call never runs its async rule and resolves to the newest result.
        """
        rule = self.rules.get(name)
        if rule is None:
            return None

        ticket = self._issue_ticket(name)
        try:
            result = await self._progressive(name, value, rule, ticket)
            if not ticket.future.done():
                ticket.future.set_result(result)
            return result
        finally:
            if not ticket.future.done():
                ticket.future.cancel()

    # Feedback and whole form

    async def validate_field_with_feedback(self, name: str, value: str) -> FieldValidationResult:
        """Validate in the engine's mode and classify the outcome"""
        seq = self._feedback_seq.get(name, 0) + 1
        self._feedback_seq[name] = seq

        if self.mode == ValidationMode.PROGRESSIVE:
            error = await self.validate_field_progressive(name, value)
        else:
            error = await self.validate_field(name, value)

        rule = self.rules.get(name)
        warning = None
        suggestion = None

        if not error and rule is not None:
            if rule.min_length and 0 < len(value) < rule.min_length + 2:
                warning = WARNING_MESSAGE
            if rule.pattern is not None:
                suggestion = SUGGESTION_MESSAGE

        # A newer call for this field owns the error map
        if self._feedback_seq.get(name) == seq and rule is not None:
            self.errors[name] = error

        return FieldValidationResult(
            is_valid=error is None,
            error=error,
            warning=warning,
            suggestion=suggestion,
        )

    async def validate_form(self, form_data: Dict[str, str]) -> bool:
        """Validate every ruled field concurrently and record all errors"""
        names = list(self.rules)
        results = await asyncio.gather(
            *(self.validate_field(name, form_data.get(name) or "") for name in names)
        )

        new_errors = {name: error for name, error in zip(names, results) if error}
        self.errors = dict(new_errors)
        self.touched.update(names)

        if new_errors:
            count = len(new_errors)
            noun = "error" if count == 1 else "errors"
            self._announce(f"Form has {count} {noun}. Please review and correct.")
            logger.debug(f"Form validation failed for fields: {sorted(new_errors)}")

        return not new_errors

    # Error and touched state

    def clear_errors(self) -> None:
        self.errors = {}

    def clear_field_error(self, name: str) -> None:
        self.errors[name] = None

    def set_field_error(self, name: str, error: Optional[str]) -> None:
        self.errors[name] = error
        if error:
            self._announce(f"{field_label(name)}: {error}")

    def set_field_touched(self, name: str, touched: bool = True) -> None:
        if touched:
            self.touched.add(name)
        else:
            self.touched.discard(name)

    def is_field_touched(self, name: str) -> bool:
        return name in self.touched

    def should_show_error(self, name: str) -> bool:
        has_error = bool(self.errors.get(name))
        if self.mode == ValidationMode.ON_SUBMIT:
            return has_error
        return has_error and name in self.touched

    def visible_errors(self) -> Dict[str, str]:
        return {
            name: error
            for name, error in self.errors.items()
            if error and self.should_show_error(name)
        }

    @property
    def is_validating(self) -> bool:
        return self._validating > 0
