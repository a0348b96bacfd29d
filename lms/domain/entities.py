from dataclasses import dataclass
from enum import Enum


class CourseStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"


class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class EnrollmentStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"


COURSE_CATEGORIES = (
    "Development",
    "Business",
    "Finance",
    "IT & Software",
    "Office Productivity",
    "Personal Development",
    "Design",
    "Marketing",
    "Health & Fitness",
    "Music",
    "Teaching & Academics",
)


@dataclass(frozen=True)
class User:
    id: int | None
    email: str
    name: str = ""
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
