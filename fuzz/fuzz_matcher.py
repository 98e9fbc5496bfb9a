import sys

import atheris

with atheris.instrument_imports():
    from voicecmd.center.config import VoiceCommand
    from voicecmd.center.matcher import METRICS, MatchEngine


def TestOneInput(data: bytes) -> None:
    fdp = atheris.FuzzedDataProvider(data)
    spoken = fdp.ConsumeUnicodeNoSurrogates(64)
    commands = [
        VoiceCommand(
            id=f"vc_{index}",
            name=f"cmd {index}",
            trigger_phrase=fdp.ConsumeUnicodeNoSurrogates(32),
            script="x",
            similarity_threshold=fdp.ConsumeProbability(),
            enabled=fdp.ConsumeBool(),
        )
        for index in range(fdp.ConsumeIntInRange(0, 4))
    ]
    for metric in METRICS:
        score = METRICS[metric](spoken, spoken)
        assert 0.0 <= score <= 1.0
        result = MatchEngine.for_metric(metric).best_match(spoken, commands, 0.75)
        if result is not None:
            assert result.command.enabled
            assert 0.0 <= result.score <= 1.0


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
