"""Exception hierarchy for pipeline stages.

Per-unit failures (a single module fetch) are captured and aggregated by the
stage that produced them. Structural failures propagate to the caller and
stop the stage.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ModuleFetchError(PipelineError):
    """A catalog entry could not be retrieved or parsed."""

    def __init__(self, module_id: str, reason: str):
        self.module_id = module_id
        self.reason = reason
        super().__init__(f"{module_id}: {reason}")


class ShapeMismatchError(PipelineError):
    """A composite field did not split into the expected number of parts."""


class SchemaError(PipelineError):
    """An input table does not satisfy its declared column contract."""


class SampleNameError(PipelineError):
    """A filename does not match the configured sample-name grammar."""


class MissingDenominatorError(PipelineError):
    """One or more samples have mapping data but no read-depth total."""

    def __init__(self, sample_ids: list[str]):
        self.sample_ids = sorted(sample_ids)
        super().__init__(
            f"No read-depth total for {len(self.sample_ids)} sample(s): "
            f"{', '.join(self.sample_ids)}"
        )


class VerificationMismatchError(PipelineError):
    """Independent read-count methods disagree for one or more files."""

    def __init__(self, mismatches: list[dict]):
        self.mismatches = mismatches
        details = "; ".join(
            f"{m['file']} (records={m['n_reads']}, lines/4={m['n_reads_check']})"
            for m in mismatches
        )
        super().__init__(f"Read-count verification failed for {len(mismatches)} file(s): {details}")
