"""
Deal policy constants

Status graph, deadlines, bonus/penalty brackets, reminder stages and badge
thresholds. Everything time-based is expressed in days.
"""

# Deal statuses
CONTACTED = "Contacted"
ONGOING = "Ongoing"
SUCCESS = "Success"
FAIL = "Fail"
CLOSED = "Closed"

DEAL_STATUSES = [CONTACTED, ONGOING, SUCCESS, FAIL, CLOSED]
OPEN_STATUSES = (CONTACTED, ONGOING)
RESOLVED_STATUSES = (SUCCESS, FAIL)
TERMINAL_STATUSES = (SUCCESS, FAIL, CLOSED)

VALID_TRANSITIONS = {
    CONTACTED: [ONGOING, CLOSED],
    ONGOING: [SUCCESS, FAIL, CLOSED],
    SUCCESS: [CLOSED],
    FAIL: [CLOSED],
    CLOSED: [],
}

# Who drives a transition
INITIATOR_PARTICIPANT = "participant"
INITIATOR_ADMIN = "admin"
INITIATOR_POST_OWNER = "post_owner"
INITIATOR_SCHEDULER = "scheduler"

INITIATORS = (
    INITIATOR_PARTICIPANT,
    INITIATOR_ADMIN,
    INITIATOR_POST_OWNER,
    INITIATOR_SCHEDULER,
)

# Both deadlines share one value
DEAL_LIFETIME_DAYS = 90

# (max fractional days since creation, bonus, penalty), first match wins
CONFIRMATION_BRACKETS = [
    (1, 5, 0),
    (7, 3, 0),
    (30, 1, 0),
]
LATE_CONFIRMATION_PENALTY = 2

# (days since creation, minimum days since the last reminder, label)
# A stage with no minimum only fires when no reminder was ever sent
REMINDER_STAGES = [
    (1, None, "1-day"),
    (7, 6, "7-day"),
    (30, 23, "30-day"),
    (85, 50, "90-day-warning"),
]
FINAL_WARNING = "90-day-warning"

AUTO_CLOSE_PENALTY = 5

BADGE_THRESHOLDS = [10, 20, 50, 100, 150]

# Outcome recorded in the workspace per resolved status
OUTCOME_FOR_STATUS = {SUCCESS: "Won", FAIL: "Failed"}


def allowed_transitions(status: str) -> list[str]:
    return VALID_TRANSITIONS.get(status, [])


def confirmation_adjustment(elapsed_days: float) -> tuple[int, int]:
    """Return (bonus, penalty) earned by a resolution realized after elapsed_days"""
    for max_days, bonus, penalty in CONFIRMATION_BRACKETS:
        if elapsed_days <= max_days:
            return bonus, penalty
    return 0, LATE_CONFIRMATION_PENALTY
