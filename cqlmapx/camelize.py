"""Conversion of snake_case identifiers to CamelCase."""


def _allowed(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


def camelize(name: str) -> str:
    """Turn a snake_case name into CamelCase, dropping underscores.

    Raises ValueError for characters other than ASCII letters, digits and
    underscores.
    """
    out: list[str] = []
    underscore_seen = False
    for i, ch in enumerate(name):
        if not _allowed(ch):
            raise ValueError(f"not allowed name {name}")
        if ch == "_":
            underscore_seen = True
            continue
        if (i == 0 or underscore_seen) and ch.islower():
            ch = ch.upper()
            underscore_seen = False
        out.append(ch)
    return "".join(out)