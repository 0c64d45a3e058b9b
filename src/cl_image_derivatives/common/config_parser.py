"""Parser for the responsive-design configuration mini-language.

Tables are newline-delimited; each line is one of::

    value=key|Label
    value=key
    value

A leading ``+`` on the key marks the table default. Values of the form
``a:b`` become an integer pair, numeric values become integers and anything
else is kept as a string.
"""

from .errors import ConfigError
from .schemas import ConfigEntry, ConfigTable, ResponsiveConfig
from .settings import DerivativeSettings


def _parse_value(raw: str, line: str) -> int | list[int] | str:
    if ":" in raw:
        try:
            return [int(part.strip()) for part in raw.split(":")]
        except ValueError as exc:
            raise ConfigError(line, "ratio components must be integers") from exc
    try:
        return int(raw)
    except ValueError:
        return raw


def parse_table(text: str) -> ConfigTable:
    """Parse a multiline table into ``{default, data}``.

    Duplicate keys are last-wins. Without a ``+`` marker the first entry
    becomes the default.
    """
    table = ConfigTable()
    lines = (line.strip() for line in text.replace("\r", "").split("\n"))

    for line in lines:
        if not line:
            continue

        if "=" in line:
            raw_value, rest = line.split("=", 1)
            key, sep, label = rest.partition("|")
        else:
            raw_value, key, sep, label = line, line, "", ""

        raw_value, key = raw_value.strip(), key.strip()
        is_default = key.startswith("+")
        key = key.lstrip("+").strip()
        label = label.strip() if sep else key

        if not key:
            raise ConfigError(line, "missing key")
        if not raw_value:
            raise ConfigError(line, "missing value")

        entry = ConfigEntry(key=key, label=label, value=_parse_value(raw_value, line))
        if is_default:
            table.default = entry
        table.data[key] = entry

    if table.default is None and table.data:
        table.default = next(iter(table.data.values()))

    return table


def parse_factors(text: str) -> list[float]:
    """Parse ``"0.5,1,1.5,2"`` into floats, ascending."""
    factors: list[float] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            factor = float(part)
        except ValueError as exc:
            raise ConfigError(part, "scale factor must be a number") from exc
        if factor <= 0:
            raise ConfigError(part, "scale factor must be positive")
        factors.append(factor)

    if not factors:
        raise ConfigError(text, "no scale factors")
    return sorted(factors)


def parse_column_fractions(text: str) -> list[tuple[int, int]]:
    """Parse ``"1-1,1-2,2-3"`` (or ``1/2``) into (numerator, denominator) pairs."""
    fractions: list[tuple[int, int]] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        sep = "/" if "/" in part else "-"
        pieces = part.split(sep)
        if len(pieces) != 2:
            raise ConfigError(part, "column width must be 'n-d' or 'n/d'")
        try:
            numerator, denominator = int(pieces[0]), int(pieces[1])
        except ValueError as exc:
            raise ConfigError(part, "column width parts must be integers") from exc
        if numerator <= 0 or denominator <= 0:
            raise ConfigError(part, "column width parts must be positive")
        fractions.append((numerator, denominator))
    return fractions


def parse_responsive_config(settings: DerivativeSettings) -> ResponsiveConfig:
    breakpoints = parse_table(settings.breakpoints)
    aspect_ratios = parse_table(settings.aspect_ratios)

    for entry in breakpoints.data.values():
        if not isinstance(entry.value, int):
            raise ConfigError(f"{entry.value}={entry.key}", "breakpoint value must be an integer")

    return ResponsiveConfig(
        breakpoints=breakpoints,
        aspect_ratios=aspect_ratios,
        factors=parse_factors(settings.factors),
        column_fractions=parse_column_fractions(settings.column_widths),
    )
