"""Poll-related limits shared across the core and the server."""

DEFAULT_TIME_LIMIT_SECONDS: int = 60
MIN_TIME_LIMIT_SECONDS: int = 5
MAX_TIME_LIMIT_SECONDS: int = 300

MAX_QUESTION_TEXT_LENGTH: int = 200
MAX_STUDENT_NAME_LENGTH: int = 40
DEFAULT_STUDENT_NAME: str = "Student"
MIN_OPTION_COUNT: int = 2

HISTORY_LIMIT: int = 10

MAX_CHAT_MESSAGE_LENGTH: int = 500
TEACHER_CHAT_NAME: str = "Teacher"
UNKNOWN_CHAT_NAME: str = "Unknown"
