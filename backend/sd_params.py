"""
Parser for the "parameters" text block written by Stable Diffusion WebUI.

    <prompt>
    Negative prompt: <negative prompt>
    Steps: 20, Sampler: Euler a, CFG scale: 7, Seed: 1234, Size: 512x512, Model hash: 6ce0161689, Model: v1-5

The negative prompt line is optional. Field names in the trailing lines are
normalized ("CFG scale" -> "cfg_scale"). Parsing stops at the first empty line.
Trailing fields never replace the prompt or negative prompt.
"""

import re
from typing import Dict, List, Optional

NEGATIVE_PREFIX = "negative prompt"

IDENTIFIER_FIELDS = ("model_hash", "model")

# only ever taken from the first two lines
HEAD_FIELDS = ("prompt", "negative")

_WHITESPACE = re.compile(r"\s+")


def normalize_key(name: str) -> str:
    return _WHITESPACE.sub("_", name.strip().lower())


def _parse_fields(line: str, params: Dict[str, str]) -> None:
    for segment in line.split(","):
        # a segment without a colon is kept as a key with an empty value
        name, _, value = segment.partition(":")
        key = normalize_key(name)
        if not key:
            continue
        params[key] = value.strip()


def parse_parameters(text: str) -> Dict[str, str]:
    lines: List[str] = text.split("\n")
    head: Dict[str, str] = {"prompt": lines[0]}

    i = 1
    if i < len(lines) and lines[i].lower().startswith(NEGATIVE_PREFIX):
        _, _, negative = lines[i].partition(":")
        head["negative"] = negative.strip()
        i += 1

    fields: Dict[str, str] = {}
    for line in lines[i:]:
        if not line.rstrip("\r"):
            break
        _parse_fields(line, fields)

    head.update((k, v) for k, v in fields.items() if k not in HEAD_FIELDS)
    return head


def model_identifier(params: Dict[str, str]) -> Optional[str]:
    """The value used to name a converted image: model hash, else model name."""
    for key in IDENTIFIER_FIELDS:
        value = params.get(key)
        if value:
            return value
    return None
