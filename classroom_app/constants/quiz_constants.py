"""Quiz and analytics policy constants shared across core layers."""

QUESTIONS_PER_SESSION: int = 10
DEFAULT_DURATION_MINUTES: int = 10
DEFAULT_DECLARED_TOTAL_QUESTIONS: int = 10
TIMER_TICK_SECONDS: int = 1
# Live sessions are evicted this long after their countdown would have ended.
SESSION_EVICTION_GRACE_SECONDS: int = 300

# Accuracy (percent) below which a student is flagged as needing attention.
ATTENTION_THRESHOLD_PERCENT: float = 60.0
PASS_THRESHOLD_PERCENT: float = 60.0
STRONG_THRESHOLD_PERCENT: float = 80.0
EXCELLENT_CLASS_THRESHOLD_PERCENT: float = 75.0

IMPROVEMENT_WINDOW_SIZE: int = 3
CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND: int = 3
SELF_VIEW_MIN_ATTEMPTS_FOR_TREND: int = 5
TREND_CHART_LIMIT: int = 10
CLASS_CHART_LIMIT: int = 10
INSIGHT_LIST_LIMIT: int = 5

UNKNOWN_STUDENT_NAME: str = "Unknown Student"

JOIN_CODE_LENGTH: int = 6
JOIN_CODE_ALPHABET: str = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
JOIN_CODE_MAX_RETRIES: int = 5
