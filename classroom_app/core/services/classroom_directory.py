"""Service for classrooms, join codes, memberships and announcements."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random

from classroom_app.constants.quiz_constants import (
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    JOIN_CODE_MAX_RETRIES,
)
from classroom_app.core.errors import DuplicateMembership, NotFound, StoreError, UniqueViolation
from classroom_app.core.markdown_renderer import renderer
from classroom_app.core.models import (
    Announcement,
    Classroom,
    ClassroomMembership,
    Profile,
    Role,
)
from classroom_app.core.row_store import RowStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FacultyOverview:
    """Headline counts for a faculty member's dashboard."""

    classroom_count: int
    total_students: int
    total_quizzes: int


def normalize_join_code(code: str) -> str:
    return code.strip().upper()


class ClassroomDirectory:
    """Manages the classrooms relation and everything hanging off it."""

    def __init__(self, store: RowStore, rng: random.Random | None = None) -> None:
        self._store = store
        self._rng = rng or random.Random()

    # --- Profiles ---

    def create_profile(self, full_name: str, role: Role, profile_id: str | None = None) -> Profile:
        cleaned = full_name.strip()
        if not cleaned:
            raise ValueError("Full name must not be empty.")
        record = {"full_name": cleaned, "role": Role(role).value}
        if profile_id is not None:
            record["id"] = profile_id
        return Profile.from_row(self._store.insert("profiles", record))

    def get_profile(self, profile_id: str) -> Profile:
        row = self._store.select_one("profiles", {"id": profile_id})
        if row is None:
            raise NotFound(f"Profile {profile_id} was not found.")
        return Profile.from_row(row)

    # --- Classrooms ---

    def create_classroom(self, faculty_id: str, name: str, description: str = "") -> Classroom:
        cleaned_name = name.strip()
        if not cleaned_name:
            raise ValueError("Classroom name must not be empty.")

        for _ in range(JOIN_CODE_MAX_RETRIES):
            join_code = self.generate_join_code()
            try:
                row = self._store.insert(
                    "classrooms",
                    {
                        "faculty_id": faculty_id,
                        "name": cleaned_name,
                        "description": description.strip(),
                        "join_code": normalize_join_code(join_code),
                    },
                )
            except UniqueViolation:
                logger.info("Join code %s already taken; drawing another", join_code)
                continue
            logger.info("Created classroom %s with join code %s", row["id"], row["join_code"])
            return Classroom.from_row(row)
        raise StoreError("Could not allocate a unique join code. Please try again.")

    def generate_join_code(self) -> str:
        return "".join(self._rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))

    def get_classroom(self, classroom_id: str) -> Classroom:
        row = self._store.select_one("classrooms", {"id": classroom_id})
        if row is None:
            raise NotFound(f"Classroom {classroom_id} was not found.")
        return Classroom.from_row(row)

    def find_by_join_code(self, code: str) -> Classroom:
        row = self._store.select_one("classrooms", {"join_code": normalize_join_code(code)})
        if row is None:
            raise NotFound("Invalid join code.")
        return Classroom.from_row(row)

    def list_faculty_classrooms(self, faculty_id: str) -> list[Classroom]:
        rows = self._store.select_where(
            "classrooms",
            {"faculty_id": faculty_id},
            order_by=[("created_at", True)],
        )
        return [Classroom.from_row(row) for row in rows]

    # --- Memberships ---

    def join_classroom(self, student_id: str, code: str) -> ClassroomMembership:
        classroom = self.find_by_join_code(code)
        try:
            row = self._store.insert(
                "classroom_members",
                {"classroom_id": classroom.id, "student_id": student_id},
            )
        except UniqueViolation as exc:
            raise DuplicateMembership("You are already a member of this classroom.") from exc
        logger.info("Student %s joined classroom %s", student_id, classroom.id)
        return ClassroomMembership.from_row(row)

    def list_student_classrooms(self, student_id: str) -> list[Classroom]:
        rows = self._store.select_where(
            "classroom_members",
            {"student_id": student_id},
            order_by=[("joined_at", True)],
            joins={"classrooms": ("classrooms", "classroom_id")},
        )
        return [Classroom.from_row(row["classrooms"]) for row in rows if row.get("classrooms")]

    def count_members(self, classroom_ids: list[str]) -> int:
        if not classroom_ids:
            return 0
        return self._store.count("classroom_members", {"classroom_id": classroom_ids})

    def faculty_overview(self, faculty_id: str) -> FacultyOverview:
        classrooms = self.list_faculty_classrooms(faculty_id)
        return FacultyOverview(
            classroom_count=len(classrooms),
            total_students=self.count_members([classroom.id for classroom in classrooms]),
            total_quizzes=self._store.count("quizzes", {"faculty_id": faculty_id}),
        )

    # --- Announcements ---

    def post_announcement(self, classroom_id: str, faculty_id: str, title: str, content: str) -> Announcement:
        cleaned_title = title.strip()
        cleaned_content = content.strip()
        if not cleaned_title or not cleaned_content:
            raise ValueError("Announcement title and content must not be empty.")
        self.get_classroom(classroom_id)
        row = self._store.insert(
            "announcements",
            {
                "classroom_id": classroom_id,
                "faculty_id": faculty_id,
                "title": cleaned_title,
                "content": cleaned_content,
            },
        )
        return self._render(Announcement.from_row(row))

    def list_announcements(self, classroom_id: str) -> list[Announcement]:
        rows = self._store.select_where(
            "announcements",
            {"classroom_id": classroom_id},
            order_by=[("created_at", True)],
            joins={"profiles": ("profiles", "faculty_id")},
        )
        return [self._render(Announcement.from_row(row)) for row in rows]

    @staticmethod
    def _render(announcement: Announcement) -> Announcement:
        announcement.content_html = renderer.render_fragment(announcement.content)
        return announcement
