"""Static metadata describing Classroom Quiz."""

APP_NAME = "Classroom Quiz"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Classroom Quiz lets faculty run classrooms with announcements and timed quizzes. "
    "Students join with a classroom code, take each quiz once, and follow their progress."
)
