"""Sample identifiers parsed from raw read file names."""

import re
from dataclasses import dataclass
from pathlib import Path

from kegg_abundance.config.schema import DEFAULT_READ_FILENAME_PATTERN, ReadDepthConfig
from kegg_abundance.errors import SampleNameError


@dataclass(frozen=True)
class ReadFileName:
    """Structured view of one read file name.

    Attributes:
        filename: Base name of the file
        sample: Raw sample token captured by the grammar
        sample_id: Sample identifier after applying the template
        lane: Lane number (e.g. "001") or None
        read: Read direction ("1"/"2") or None for single-end files
    """
    filename: str
    sample: str
    sample_id: str
    lane: str | None = None
    read: str | None = None


class SampleNameGrammar:
    """Regex grammar mapping read file names to sample identifiers.

    The pattern must match the whole base name and define a ``sample``
    group; ``lane`` and ``read`` groups are optional. The sample identifier
    is built by formatting ``template`` with every named group plus the
    ``site_prefix`` / ``site_suffix`` markers, so the read-direction and
    lane tokens never reach the identifier unless the template asks for
    them.

    Example:
        >>> grammar = SampleNameGrammar(site_prefix="LakeA_")
        >>> grammar.parse("D5_S3_L001_R2_001.fastq.gz").sample_id
        'LakeA_D5'
    """

    def __init__(
        self,
        pattern: str = DEFAULT_READ_FILENAME_PATTERN,
        template: str = "{site_prefix}{sample}{site_suffix}",
        site_prefix: str = "",
        site_suffix: str = "",
    ):
        self.regex = re.compile(pattern)
        if "sample" not in self.regex.groupindex:
            raise ValueError("Sample-name pattern must define a named group 'sample'")
        self.template = template
        self.site_prefix = site_prefix
        self.site_suffix = site_suffix

    def parse(self, filename: str | Path) -> ReadFileName:
        """Parse one file name.

        Raises:
            SampleNameError: If the name does not match the grammar or the
                template references a field the grammar does not provide
        """
        name = Path(filename).name
        match = self.regex.fullmatch(name)
        if not match:
            raise SampleNameError(
                f"File name {name!r} does not match pattern {self.regex.pattern!r}"
            )

        groups = match.groupdict()
        fields = {key: value or "" for key, value in groups.items()}
        fields["site_prefix"] = self.site_prefix
        fields["site_suffix"] = self.site_suffix

        try:
            sample_id = self.template.format(**fields)
        except KeyError as e:
            raise SampleNameError(
                f"Sample-id template {self.template!r} references unknown field {e}"
            ) from e

        if not sample_id:
            raise SampleNameError(f"Empty sample id derived from {name!r}")

        return ReadFileName(
            filename=name,
            sample=groups["sample"],
            sample_id=sample_id,
            lane=groups.get("lane"),
            read=groups.get("read"),
        )

    def sample_id(self, filename: str | Path) -> str:
        """Shortcut for ``parse(filename).sample_id``."""
        return self.parse(filename).sample_id

    @classmethod
    def from_config(cls, config: ReadDepthConfig) -> "SampleNameGrammar":
        return cls(
            pattern=config.filename_pattern,
            template=config.sample_id_template,
            site_prefix=config.site_prefix,
            site_suffix=config.site_suffix,
        )
