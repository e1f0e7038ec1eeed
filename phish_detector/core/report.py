"""Combines the model's verdict with the URL checks made during a run."""

from phish_detector.schemas import DetectionReport, DetectionVerdict


def assemble_report(verdict: DetectionVerdict, url_checks: dict[str, str]) -> DetectionReport:
    """
    Build the caller-facing report.

    Args:
        verdict: Decoded final answer from the model
        url_checks: URL -> scanner verdict collected during the run

    Returns:
        Read-only DetectionReport holding a copy of url_checks
    """
    return DetectionReport(
        suspicious=verdict.suspicious,
        shortDescription=verdict.shortDescription,
        detectedItems=tuple(verdict.detectedItems),
        urlChecks=dict(url_checks),
    )
