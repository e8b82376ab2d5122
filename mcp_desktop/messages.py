"""User-facing remediation text for each startup failure category."""

from __future__ import annotations

from mcp_desktop.models import FailureCategory, StartupOutcome

DIALOG_TITLE = "Startup failed"

REMEDIATION: dict[FailureCategory, tuple[str, list[str]]] = {
    FailureCategory.PORT_UNAVAILABLE: (
        "The backend port is already in use.",
        [
            "Close other programs that may be using the port.",
            "Restart the application.",
            "Restart your computer.",
            "Check your firewall settings.",
        ],
    ),
    FailureCategory.EXECUTABLE_MISSING: (
        "The backend program is missing.",
        [
            "Reinstall the application.",
            "Make sure the backend folder next to the application contains the backend executable.",
        ],
    ),
    FailureCategory.PROCESS_SPAWN_ERROR: (
        "The backend program could not be launched.",
        [
            "Check that the backend executable has execute permission.",
            "Make sure your antivirus software is not blocking it.",
            "Reinstall the application.",
        ],
    ),
    FailureCategory.PROCESS_EXITED_EARLY: (
        "The backend program stopped unexpectedly.",
        [
            "Restart the application.",
            "Check the launcher log for the backend's output.",
        ],
    ),
    FailureCategory.HEALTH_CHECK_EXHAUSTED: (
        "The backend did not respond in time.",
        [
            "Restart the application.",
            "Check available system resources.",
            "Check the launcher log for more information.",
        ],
    ),
    FailureCategory.UNKNOWN: (
        "An unexpected error occurred.",
        [
            "Restart the application.",
            "Check available system resources.",
            "Check the launcher log for more information.",
        ],
    ),
}


def format_failure(outcome: StartupOutcome) -> str:
    """Render the blocking error dialog text for a failed outcome."""
    category = outcome.category or FailureCategory.UNKNOWN
    reason, steps = REMEDIATION[category]

    lines = ["Unable to start the backend service.", "", f"Reason: {reason}"]
    if category is FailureCategory.UNKNOWN and outcome.detail:
        lines.append(f"Details: {outcome.detail}")
    lines += ["", "What you can try:"]
    lines += [f"{i}. {step}" for i, step in enumerate(steps, 1)]
    return "\n".join(lines)
