import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
FALLBACK_ID_PREFIX = "sample-"
GUEST_ID = 0


class Category(str, Enum):
    STRENGTHEN = "strengthen"
    WEAKEN = "weaken"
    ASSUMPTION = "assumption"
    FLAW = "flaw"

    @property
    def display_name(self) -> str:
        return CATEGORY_TITLES[self]


CATEGORY_TITLES = {
    Category.STRENGTHEN: "Strengthen the Argument",
    Category.WEAKEN: "Weaken the Argument",
    Category.ASSUMPTION: "Find the Assumption",
    Category.FLAW: "Identify the Flaw",
}


def _zero_by_category() -> Dict[str, float]:
    return {category.value: 0 for category in Category}


# --- Models ---
class User(BaseModel):
    id: int
    username: str
    email: str = ""
    subscription_type: str = "free"

    @property
    def is_guest(self) -> bool:
        return self.id == GUEST_ID


GUEST_USER = User(id=GUEST_ID, username="Guest", email="", subscription_type="free")


class Question(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, coerce_numbers_to_str=True
    )

    id: str
    category: Category = Field(alias="type")
    prompt: str = Field(alias="question")
    options: List[str]
    correct_answer: str
    explanation: str = ""
    difficulty: Optional[float] = None

    @property
    def is_fallback(self) -> bool:
        return self.id.startswith(FALLBACK_ID_PREFIX)

    @property
    def option_labels(self) -> List[str]:
        """Options are rendered as "A) ...", so the label is the first character."""
        return [option[:1] for option in self.options]


class AnswerSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    user_answer: str = Field(alias="userAnswer")
    response_time: Optional[int] = Field(None, alias="responseTime")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GradingResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    correct: bool
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""


class ProgressStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    questions_answered: int = Field(0, alias="questionsAnswered")
    accuracy: float = 0
    current_streak: int = Field(0, alias="currentStreak")
    longest_streak: int = Field(0, alias="longestStreak")
    correct_answers: int = Field(0, alias="correctAnswers")
    accuracy_by_type: Dict[str, float] = Field(
        default_factory=_zero_by_category, alias="accuracyByType"
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # The stats endpoint sends null for counters it has not computed yet.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @property
    def missed_count(self) -> int:
        return max(self.questions_answered - self.correct_answers, 0)

    @property
    def streak_message(self) -> str:
        streak = self.current_streak
        if streak <= 0:
            return ""
        if streak == 1:
            return "1 in a row!"
        if streak < 5:
            return f"{streak} in a row!"
        if streak < 10:
            return f"{streak} streak!"
        return f"{streak} streak! Amazing!"


class AuthResponse(BaseModel):
    message: str = ""
    user: User
    token: str = Field(validation_alias=AliasChoices("token", "credential"))


# --- Forms ---
class LoginForm(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Email is required")
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("password")
    @classmethod
    def _check_password_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Password is required")
        return value


class RegistrationForm(LoginForm):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value

    @field_validator("password")
    @classmethod
    def _check_password_length(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return value

    @model_validator(mode="after")
    def _check_passwords_match(self) -> "RegistrationForm":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ProfileUpdate(BaseModel):
    username: str
    email: str


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


class ProfileResponse(BaseModel):
    user: User


class MessageResponse(BaseModel):
    message: str = ""


# --- Requests ---
class StartPractice(BaseModel):
    category: Category = Category.STRENGTHEN
    difficulty: Optional[float] = None


class SelectOption(BaseModel):
    option: str
