"""Exception hierarchy.

Pipeline failures are plain exceptions raised to the caller.
API errors extend ProblemDetailError; the middleware renders them as
application/problem+json (RFC 9457).
"""

PROBLEM_BASE_URI = "https://health-timeline.dev/problems"


def problem_type(slug: str) -> str:
    return f"{PROBLEM_BASE_URI}/{slug}"


class ExportParseError(Exception):
    """The export stream contained malformed markup.

    The underlying parser error is chained as ``__cause__``.
    """

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Failed to parse {source}: {detail}")


class ProblemDetailError(Exception):
    """Base for errors that map onto a problem+json response."""

    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class ValidationError(ProblemDetailError):
    def __init__(self, violations: list[dict]):
        super().__init__(
            problem_type("validation-error"),
            "Validation Error",
            422,
            f"Request contains {len(violations)} validation error(s)",
            violations=violations,
        )


class InvalidDateRangeError(ProblemDetailError):
    def __init__(self, start: str, end: str):
        super().__init__(
            problem_type("invalid-date-range"),
            "Invalid Date Range",
            400,
            f"Parameter 'start' ({start}) must not be after 'end' ({end})",
        )


class InvalidCategoryError(ProblemDetailError):
    def __init__(self, category: str, allowed: set[str]):
        super().__init__(
            problem_type("invalid-category"),
            "Invalid Category",
            422,
            f"Category '{category}' is not supported. Must be one of: {', '.join(sorted(allowed))}",
        )
