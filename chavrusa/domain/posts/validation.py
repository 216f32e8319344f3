"""Post payload validation - raw form input to a normalized post or a rejection"""

from typing import Any, Optional

from ...config import (
    ALLOWED_DURATIONS,
    DEFAULT_DURATION_DAYS,
    VALIDATION_STRICT,
    get_validation_policy,
)
from ...models import IN_PERSON_FORMATS, POST_FORMATS
from ...shared.validators import (
    normalize,
    parse_availability_slots,
    title_case_words,
    to_safe_bool,
)
from .schemas import PostInput

DEFAULT_CATEGORY = "Other"
DEFAULT_TOPIC = "Untitled request"
DEFAULT_TIME_ZONE = "America/New_York"
DEFAULT_FORMAT = "flexible"
RELAY_CONTACT = "relay"


class PostValidationError(ValueError):
    """Raised with a single human-readable rejection reason"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def parse_duration(value: Any, policy: Optional[str] = None) -> int:
    """Validate a duration in days against the allowed set"""
    policy = policy or get_validation_policy()
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        number = None
    # 14.0 counts, 14.5 does not
    duration = int(number) if number is not None and number.is_integer() else None
    if duration in ALLOWED_DURATIONS:
        return duration
    if policy == VALIDATION_STRICT:
        raise PostValidationError("Duration must be 7, 14, or 30 days.")
    return DEFAULT_DURATION_DAYS


def validate_post_payload(
    payload: dict, policy: Optional[str] = None, require_duration: bool = True
) -> PostInput:
    """
    Normalize a create/update payload.

    Args:
        payload: Raw key/value input (JSON body or form fields)
        policy: "strict" rejects invalid format/duration and empty slot lists,
            "lenient" substitutes defaults. Defaults to VALIDATION_POLICY.
        require_duration: False for updates, which never touch the duration

    Raises:
        PostValidationError: With the first rejection reason found
    """
    policy = policy or get_validation_policy()
    strict = policy == VALIDATION_STRICT

    contact_method = normalize(payload.get("contactMethod")) or RELAY_CONTACT
    if contact_method != RELAY_CONTACT:
        raise PostValidationError("Only relay contact is supported.")

    post_format = normalize(payload.get("format"))
    if post_format not in POST_FORMATS:
        if strict:
            raise PostValidationError(
                "Format must be one of in_person_only, in_person_preferred, remote_only, flexible."
            )
        post_format = DEFAULT_FORMAT

    duration_days = parse_duration(payload.get("durationDays"), policy) if require_duration else None

    needs_location = post_format in IN_PERSON_FORMATS
    city = normalize(payload.get("city"))
    state = normalize(payload.get("state"))
    if needs_location and (not city or not state):
        raise PostValidationError("City and state are required for in-person learning.")

    email = normalize(payload.get("email"))
    if not email:
        raise PostValidationError("Email is required for relay notifications.")

    slots = parse_availability_slots(payload.get("availabilitySlots"))
    if strict and not slots:
        raise PostValidationError("Add at least one availability slot.")

    return PostInput(
        category=normalize(payload.get("category")) or DEFAULT_CATEGORY,
        seferName=normalize(payload.get("seferName")),
        topic=normalize(payload.get("topic")) or DEFAULT_TOPIC,
        learningStyle=normalize(payload.get("learningStyle")),
        familiarityLevel=normalize(payload.get("familiarityLevel")),
        timeZone=normalize(payload.get("timeZone")) or DEFAULT_TIME_ZONE,
        availabilityNotes=normalize(payload.get("availabilityNotes"))
        or normalize(payload.get("availability")),
        availabilitySlots=slots,
        openToOtherTimes=to_safe_bool(payload.get("openToOtherTimes"), False),
        format=post_format,
        city=city if needs_location else "",
        state=state if needs_location else "",
        email=email,
        posterName=title_case_words(payload.get("posterName")),
        contactMethod=contact_method,
        durationDays=duration_days,
    )
