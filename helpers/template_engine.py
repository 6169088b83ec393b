# helpers/template_engine.py
import re
from typing import Any, Dict, Iterable, List, Mapping, Union

from helpers.ghl_client import GHLClient

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")

Values = Union[Mapping[str, Any], Iterable[Dict[str, Any]]]


def _as_mapping(values: Values) -> Dict[str, Any]:
    if isinstance(values, Mapping):
        return dict(values)
    return {cv.get("name"): cv.get("value") for cv in values if cv.get("name")}


def find_placeholders(template: str) -> List[str]:
    seen: List[str] = []
    for name in _PLACEHOLDER.findall(template or ""):
        if name not in seen:
            seen.append(name)
    return seen


def substitute(template: str, values: Values) -> str:
    """
    Replace every `{name}` with that custom value's content ("" when empty).
    Placeholders with no matching custom value are left as they are.
    """
    out = template or ""
    for name, value in _as_mapping(values).items():
        out = out.replace("{" + str(name) + "}", "" if value is None else str(value))
    return out


async def render_prompt(client: GHLClient, tenant_id: str, location_id: str, template: str) -> str:
    values = await client.list_custom_values(tenant_id, location_id)
    return substitute(template, values)
