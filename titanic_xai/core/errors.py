"""
Pipeline error types.

All of them are fatal for the stage that raises them; nothing in the
pipeline catches them to continue with degraded output.
"""


class StratificationError(ValueError):
    """A label stratum is too small for the requested split or fold count."""


class ExplainerValidationError(ValueError):
    """The explainer inputs or its predict function are inconsistent."""


class AdditivityError(RuntimeError):
    """Baseline plus contributions does not reproduce the model prediction."""

    def __init__(self, expected: float, actual: float, tolerance: float):
        self.expected = expected
        self.actual = actual
        self.tolerance = tolerance
        super().__init__(
            f"baseline + contributions = {actual:.10f} but the model predicts "
            f"{expected:.10f} (|diff| > {tolerance:g})"
        )
