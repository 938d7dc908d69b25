"""
Placeholder rendering for master templates.

Templates carry literal tokens such as {{DOMAIN}}. Only tokens present in
the mapping are replaced; anything else, including unknown {{TOKENS}}, is
left exactly as written so a template can be filled in several passes.
"""

import re
from typing import Mapping

TOKEN = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


def render(template: str, tokens: Mapping[str, str]) -> str:
    """
    Replace every {{NAME}} whose NAME is in tokens.

    Substitution is a single pass over the original text, so values that
    themselves contain {{...}} are never expanded again.

    Example:
        render("server_name {{DOMAIN}};", {"DOMAIN": "example.com"})
        # "server_name example.com;"
    """
    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in tokens:
            return tokens[name]
        return match.group(0)

    return TOKEN.sub(replace, template)


def render_bytes(template: bytes, tokens: Mapping[str, str]) -> bytes:
    """Render a UTF-8 byte template."""
    return render(template.decode("utf-8"), tokens).encode("utf-8")


def unresolved(text: str) -> list[str]:
    """Names of the {{TOKENS}} still present in text, in order of appearance."""
    seen: list[str] = []
    for name in TOKEN.findall(text):
        if name not in seen:
            seen.append(name)
    return seen
