"""Prompt construction for the classifier gateway."""

from __future__ import annotations

import textwrap
from typing import Sequence

SYSTEM_PROMPTS = {
    "json": (
        "You are a helpful assistant that organizes files into logical folders. "
        "Respond with ONLY a JSON object, nothing else."
    ),
    "text": (
        "You are a helpful assistant that organizes files into logical folders. "
        "Respond with one `filename: folder` pair per line, nothing else."
    ),
}

_FORMAT_INSTRUCTIONS = {
    "json": (
        "Return the result as a JSON object where each key is a filename and each "
        "value is the suggested folder name. Format the response as a valid JSON "
        "object ONLY, with no additional text."
    ),
    "text": (
        "Return one line per file in the form `filename: folder`. Write the filename "
        "exactly as given, then a colon, then the folder name. No additional text."
    ),
}


def build_messages(
    names: Sequence[str], *, response_format: str = "json", domain: str = ""
) -> list[dict[str, str]]:
    """Return chat messages asking the model to place every name in a topic folder.

    Args:
        names: Display names to classify, in listing order.
        response_format: ``json`` or ``text``; selects the answer shape requested.
        domain: Optional description of the collection, e.g. "Real Estate Deal".

    Returns:
        list[dict[str, str]]: System and user messages for a chat completion call.
    """
    scope = f" for my {domain}" if domain else ""
    listing = "\n".join(names)
    user_prompt = textwrap.dedent(
        """\
        I have the following files that need to be organized into topic folders{scope}:
        {listing}

        For each file, suggest a single topic folder name where it should be placed. The folder name should be:
        * Short (1-3 words)
        * Descriptive
        * Consistently named for similar types of documents

        {format_instructions}

        Include ALL files from the list above in your response.
        """
    ).format(
        scope=scope,
        listing=listing,
        format_instructions=_FORMAT_INSTRUCTIONS[response_format],
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPTS[response_format]},
        {"role": "user", "content": user_prompt},
    ]


__all__ = ["SYSTEM_PROMPTS", "build_messages"]
