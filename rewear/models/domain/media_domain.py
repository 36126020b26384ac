"""
Media domain models: candidate files, validation verdicts and upload outcomes.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_SIZE_BYTES = 5 * 1024 * 1024  # 5 MiB
DEFAULT_ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
DEFAULT_ALLOWED_MIME_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
)

# Declared MIME types accepted for each known extension
EXTENSION_MIME_MAP: dict[str, frozenset[str]] = {
    "jpg": frozenset({"image/jpeg", "image/jpg"}),
    "jpeg": frozenset({"image/jpeg", "image/jpg"}),
    "png": frozenset({"image/png"}),
    "gif": frozenset({"image/gif"}),
    "webp": frozenset({"image/webp"}),
}


class CandidateFile(BaseModel):
    """A user-selected file that has not been uploaded yet."""

    model_config = ConfigDict(frozen=True)

    name: str
    content_type: str = ""
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class ValidationPolicy(BaseModel):
    """Limits applied to every candidate file before upload."""

    model_config = ConfigDict(frozen=True)

    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    allowed_extensions: frozenset[str] = DEFAULT_ALLOWED_EXTENSIONS
    allowed_mime_types: frozenset[str] = DEFAULT_ALLOWED_MIME_TYPES


class ValidationRule(StrEnum):
    EXTENSION = "extension"
    MIME_TYPE = "mime_type"
    SIZE = "size"
    TYPE_MISMATCH = "type_mismatch"


class RuleViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule: ValidationRule
    message: str


class ValidationVerdict(BaseModel):
    """Pass/fail-with-reasons result of validating one candidate file."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    is_valid: bool
    violations: tuple[RuleViolation, ...] = ()
    detected_extension: str
    detected_mime_type: str
    size_bytes: int

    @property
    def errors(self) -> list[str]:
        return [violation.message for violation in self.violations]

    @property
    def violated_rules(self) -> set[ValidationRule]:
        return {violation.rule for violation in self.violations}


class UploadOptions(BaseModel):
    """Destination and policy for one upload batch."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    folder: str = ""
    upsert: bool = False
    cache_control: str = "3600"
    policy: ValidationPolicy = Field(default_factory=ValidationPolicy)


class UploadOutcome(BaseModel):
    """Per-file result of an upload batch."""

    file_name: str
    success: bool
    url: str | None = None
    path: str | None = None
    error: str | None = None
    verdict: ValidationVerdict | None = None


class BatchUploadResult(BaseModel):
    """Aggregate over the outcomes of one batch, in input order."""

    results: list[UploadOutcome]
    success_count: int
    failure_count: int
    total_count: int
    successful_urls: list[str]
    errors: list[str]

    @classmethod
    def from_outcomes(cls, outcomes: list[UploadOutcome]) -> "BatchUploadResult":
        succeeded = [outcome for outcome in outcomes if outcome.success]
        failed = [outcome for outcome in outcomes if not outcome.success]
        return cls(
            results=outcomes,
            success_count=len(succeeded),
            failure_count=len(failed),
            total_count=len(outcomes),
            successful_urls=[outcome.url for outcome in succeeded],
            errors=[outcome.error or "Unknown upload error" for outcome in failed],
        )

    @property
    def successful_paths(self) -> list[str]:
        return [outcome.path for outcome in self.results if outcome.success and outcome.path]
