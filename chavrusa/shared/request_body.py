"""Request body reader for endpoints that accept JSON or form posts"""

import json
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_payload(request: Request) -> dict:
    """
    Return the request body as a plain dict.

    JSON objects are returned as-is, form fields as strings. An empty or
    malformed body yields an empty dict so validation reports the missing
    fields instead of a parse error.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("⚠️ Ignoring malformed JSON request body")
        return {}
    return data if isinstance(data, dict) else {}
