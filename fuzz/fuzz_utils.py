import sys

import atheris

with atheris.instrument_imports():
    from voicecmd.center.config import ShellVariant, clamp_threshold, normalize_execution_policy
    from voicecmd.utils import (
        parse_bool,
        parse_float,
        parse_int,
        sanitize_topic_segment,
        strip_or_none,
    )


def TestOneInput(data: bytes) -> None:
    """Fuzz env parsing helpers with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Test topic sanitization
    segment = sanitize_topic_segment(value)
    assert segment and "/" not in segment

    # Test parsers with default fallbacks (should never raise)
    parse_bool(value)
    parse_int(value, default=0)
    parse_float(value, default=0.0)
    strip_or_none(value)

    ShellVariant.parse(value)
    normalize_execution_policy(value)
    threshold = clamp_threshold(value)
    if threshold is not None:
        assert 0.5 <= threshold <= 1.0


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
