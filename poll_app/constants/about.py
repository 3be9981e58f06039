"""Static metadata describing LivePoll."""

APP_NAME = "LivePoll"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "LivePoll is a live classroom poll server built with FastAPI. "
    "The teacher asks single-choice questions and students answer from the web "
    "while results are pushed to everyone as they arrive."
)
