from dataclasses import dataclass


@dataclass(frozen=True)
class Theme:
    green: str = "\033[38;5;114m"
    orange: str = "\033[38;5;208m"
    muted: str = "\033[90m"  # secondary text
    bold: str = "\033[1m"
    dim: str = "\033[2m"
    reset: str = "\033[0m"


DEFAULT = Theme()
PLAIN = Theme(**{name: "" for name in Theme.__dataclass_fields__})
_active: Theme = DEFAULT


def use(theme: Theme) -> None:
    global _active
    _active = theme


def _paint(code: str, text: str) -> str:
    return f"{code}{text}{_active.reset}"


def green(text: str) -> str:
    return _paint(_active.green, text)


def orange(text: str) -> str:
    return _paint(_active.orange, text)


def muted(text: str) -> str:
    return _paint(_active.muted, text)


def bold(text: str) -> str:
    return _paint(_active.bold, text)


def dim(text: str) -> str:
    return _paint(_active.dim, text)
