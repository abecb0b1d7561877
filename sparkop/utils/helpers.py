import jsonpickle
from datetime import datetime, timezone
from typing import Mapping


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures.

    Args:
        d: Data structure (dict, list, or primitive type)

    Returns:
        Sorted version of the data structure
    """
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data):
    """
    Returns a canonical JSON representation of a dictionary.

    Keys are sorted recursively so the representation stays the same
    regardless of the order keys were inserted in.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def render_env_file(options: Mapping[str, str]) -> str:
    """Render a shell environment file (spark-env.sh) with one `KEY=value` per line."""
    return "".join(f"{key}={value}\n" for key, value in sorted(options.items()))


def render_properties_file(options: Mapping[str, str]) -> str:
    """Render a whitespace separated properties file (spark-defaults.conf)."""
    return "".join(f"{key} {value}\n" for key, value in sorted(options.items()))


def upsert_condition(conds, newc):
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or now()
            if c.get("status") != newc["status"]:
                ltt = now()
            merged = {**c, **newc, "lastTransitionTime": ltt}
            conds[i] = merged
            break
    else:
        conds.append({**newc, "lastTransitionTime": now()})
    return conds
