"""
Job lifecycle rules.

Pipeline ordering for the grading states:

    uploaded -> processing -> assessing -> generating_feedback -> completed
                                                               \\-> failed (from any non-terminal)

Transitions are backend-driven. The client never rejects a reported
transition; ordering is only used for progress display and for flagging
unusual jumps in logs.

Dependencies: exam_tracker.models.job
System role: Job state machine helpers
"""

from exam_tracker.models.job import JobState

PIPELINE_ORDER: tuple[JobState, ...] = (
    JobState.UPLOADED,
    JobState.PROCESSING,
    JobState.ASSESSING,
    JobState.GENERATING_FEEDBACK,
    JobState.COMPLETED,
)

INITIAL_STATE = JobState.UPLOADED


def is_terminal(state: JobState) -> bool:
    """Whether the backend will report no further transition from ``state``."""
    return state.is_terminal


def is_expected_transition(previous: JobState | None, current: JobState) -> bool:
    """
    Check whether ``previous -> current`` follows pipeline order.

    Staying in the same state, moving forward any number of stages, and
    failing from a non-terminal state are expected. Anything else (moving
    backwards, leaving a terminal state) is unusual but still accepted by
    the tracker.

    Args:
        previous: Last observed state, None if this is the first observation
        current: Newly observed state

    Returns:
        bool: True if the transition follows pipeline order
    """
    if previous is None or previous is current:
        return True
    if previous.is_terminal:
        return False
    if current is JobState.FAILED:
        return True
    if current not in PIPELINE_ORDER or previous not in PIPELINE_ORDER:
        return False
    return PIPELINE_ORDER.index(current) > PIPELINE_ORDER.index(previous)


def pipeline_progress(state: JobState) -> int:
    """
    Approximate progress percentage for a state.

    Terminal states report 100; non-pipeline states report 0.

    Args:
        state: Job state

    Returns:
        int: Progress percentage (0-100)
    """
    if state.is_terminal:
        return 100
    if state not in PIPELINE_ORDER:
        return 0
    return int(PIPELINE_ORDER.index(state) * 100 / (len(PIPELINE_ORDER) - 1))
