"""
Random password generation.

Every enabled character class contributes at least one character, the rest is
drawn from the union of the enabled classes, and the result is shuffled so the
guaranteed characters do not sit at predictable positions. All randomness
comes from the ``secrets`` module (the OS CSPRNG).
"""

import secrets
from dataclasses import dataclass
from typing import List

from . import config
from .errors import NoCharacterClassesError


@dataclass
class PasswordOptions:
    """Generator settings. ``length`` is raised to the number of enabled classes if smaller."""
    length: int = config.PASSWORD_GENERATOR_DEFAULT_LENGTH
    lower: bool = True
    upper: bool = True
    numbers: bool = True
    symbols: bool = True
    exclude_ambiguous: bool = False


def _rand_below(n: int) -> int:
    # modulo bias is negligible for charset-sized n
    return secrets.randbits(32) % n


def _pick(chars: str) -> str:
    return chars[_rand_below(len(chars))]


def _shuffle(chars: List[str]) -> None:
    """Fisher-Yates shuffle in place."""
    for i in range(len(chars) - 1, 0, -1):
        j = _rand_below(i + 1)
        chars[i], chars[j] = chars[j], chars[i]


def enabled_sets(options: PasswordOptions) -> List[str]:
    """Character sets selected by ``options``, in lower/upper/numbers/symbols order."""
    selected = [
        (options.lower, config.CHARSET_LOWER),
        (options.upper, config.CHARSET_UPPER),
        (options.numbers, config.CHARSET_NUMBERS),
        (options.symbols, config.CHARSET_SYMBOLS),
    ]
    sets = [chars for enabled, chars in selected if enabled]
    if options.exclude_ambiguous:
        ambiguous = config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS
        sets = [''.join(c for c in chars if c not in ambiguous) for chars in sets]
    return sets


def generate_password(options: PasswordOptions) -> str:
    """
    Generate a password satisfying every enabled character class.

    Raises:
        NoCharacterClassesError: If all four classes are disabled
    """
    sets = enabled_sets(options)
    if not sets:
        raise NoCharacterClassesError()

    length = max(options.length, len(sets))
    pool = ''.join(sets)

    chars = [_pick(chars) for chars in sets]
    while len(chars) < length:
        chars.append(_pick(pool))

    _shuffle(chars)
    return ''.join(chars)
