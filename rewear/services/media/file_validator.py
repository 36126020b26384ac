"""
Pre-upload checks for candidate image files.

Pure functions: no network or storage access. Every rule is evaluated so a
single verdict can carry several violations at once.
"""

from collections.abc import Iterable

from rewear.models.domain.media_domain import (
    EXTENSION_MIME_MAP,
    CandidateFile,
    RuleViolation,
    ValidationPolicy,
    ValidationRule,
    ValidationVerdict,
)

_MIB = 1024 * 1024

DEFAULT_POLICY = ValidationPolicy()


def detect_extension(file_name: str) -> str:
    """Lower-cased text after the last dot, or "" when the name has none."""
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def _megabytes(size_bytes: int) -> str:
    return f"{size_bytes / _MIB:.1f}"


def validate_image_file(
    file: CandidateFile, policy: ValidationPolicy | None = None
) -> ValidationVerdict:
    """
    Validate one candidate file against a policy.

    Args:
        file: the candidate file
        policy: limits to apply; defaults to 5 MiB of jpg/jpeg/png/gif/webp

    Returns:
        ValidationVerdict with every violated rule
    """
    policy = policy or DEFAULT_POLICY
    extension = detect_extension(file.name)
    mime_type = file.content_type or ""
    size_bytes = file.size
    violations: list[RuleViolation] = []

    if extension not in policy.allowed_extensions:
        violations.append(
            RuleViolation(
                rule=ValidationRule.EXTENSION,
                message=(
                    f"Invalid file extension. Allowed: {', '.join(sorted(policy.allowed_extensions))}. "
                    f"Found: {extension}"
                ),
            )
        )

    if mime_type not in policy.allowed_mime_types:
        violations.append(
            RuleViolation(
                rule=ValidationRule.MIME_TYPE,
                message=(
                    f"Invalid file type. Allowed: {', '.join(sorted(policy.allowed_mime_types))}. "
                    f"Found: {mime_type}"
                ),
            )
        )

    if size_bytes > policy.max_size_bytes:
        violations.append(
            RuleViolation(
                rule=ValidationRule.SIZE,
                message=(
                    f"File too large. Maximum: {_megabytes(policy.max_size_bytes)}MB. "
                    f"Found: {_megabytes(size_bytes)}MB"
                ),
            )
        )

    # Unknown extensions are already reported by the extension rule
    expected = EXTENSION_MIME_MAP.get(extension)
    if expected and mime_type not in expected:
        violations.append(
            RuleViolation(
                rule=ValidationRule.TYPE_MISMATCH,
                message=(
                    f'File extension and type mismatch. Extension "{extension}" should have type: '
                    f"{' or '.join(sorted(expected))}. Found: {mime_type}"
                ),
            )
        )

    return ValidationVerdict(
        file_name=file.name,
        is_valid=not violations,
        violations=tuple(violations),
        detected_extension=extension,
        detected_mime_type=mime_type,
        size_bytes=size_bytes,
    )


def validate_image_files(
    files: Iterable[CandidateFile], policy: ValidationPolicy | None = None
) -> list[ValidationVerdict]:
    return [validate_image_file(file, policy) for file in files]
