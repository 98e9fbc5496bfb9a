import sys

import atheris

with atheris.instrument_imports():
    from voicecmd.center.errors import UnsafeRejection
    from voicecmd.center.fallback import parse_generated_command
    from voicecmd.center.models import UNSAFE_SENTINEL


def TestOneInput(data: bytes) -> None:
    # Whatever the LLM sends back, the result is one non-empty line or a rejection.
    value = data.decode("utf-8", errors="ignore")
    try:
        command = parse_generated_command(value)
    except UnsafeRejection:
        return
    assert command
    assert "\n" not in command
    assert command != UNSAFE_SENTINEL


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
