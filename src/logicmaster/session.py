import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .errors import ApiError
from .fallback import FallbackResolver
from .gateway import RequestGateway
from .models import (
    GUEST_USER,
    AnswerSubmission,
    AuthResponse,
    Category,
    GradingResult,
    MessageResponse,
    ProfileResponse,
    ProgressStats,
    Question,
    User,
)
from .token_store import TokenStore

logger = logging.getLogger(__name__)

_question_list = TypeAdapter(List[Question])


def _category_value(category: Union[Category, str]) -> str:
    return category.value if isinstance(category, Category) else str(category)


# --- Service Layer: Session Facade ---
class SessionFacade:
    """Single entry point the app surface uses for auth and content.

    Built once at startup and handed to every consumer. Call :meth:`init`
    before first use so the persisted token is loaded.
    """

    def __init__(
        self,
        token_store: TokenStore,
        gateway: RequestGateway,
        fallback: Optional[FallbackResolver] = None,
    ):
        self.token_store = token_store
        self.gateway = gateway
        self.fallback = fallback or FallbackResolver()
        self.current_user: Optional[User] = None
        self.stats = ProgressStats()

    async def init(self) -> None:
        await self.token_store.load()

    @property
    def token(self) -> Optional[str]:
        return self.token_store.token

    def is_authenticated(self) -> bool:
        return bool(self.token_store.token)

    # --- Authentication ---
    async def _authenticate(self, endpoint: str, payload: Dict[str, Any]) -> AuthResponse:
        data = await self.gateway.request(endpoint, method="POST", body=payload)
        response = AuthResponse.model_validate(data)
        await self.token_store.save(response.token)
        self.current_user = response.user
        logger.info(f"Authenticated user {response.user.id} via {endpoint}")
        return response

    async def register(self, username: str, email: str, password: str) -> AuthResponse:
        return await self._authenticate(
            "/auth/register",
            {"username": username, "email": email, "password": password},
        )

    async def login(self, email: str, password: str) -> AuthResponse:
        return await self._authenticate(
            "/auth/login", {"email": email, "password": password}
        )

    def enter_as_guest(self) -> User:
        self.current_user = GUEST_USER
        self.stats = ProgressStats()
        return GUEST_USER

    async def logout(self) -> None:
        try:
            if self.token_store.token:
                await self.gateway.request("/auth/logout", method="POST")
        except ApiError as e:
            logger.error(f"Logout API call failed: {e}")
        finally:
            await self.token_store.clear()
            self.current_user = None
            self.stats = ProgressStats()

    async def get_profile(self) -> User:
        data = await self.gateway.request("/auth/profile")
        user = ProfileResponse.model_validate(data).user
        self.current_user = user
        return user

    async def update_profile(self, username: str, email: str) -> User:
        data = await self.gateway.request(
            "/auth/profile",
            method="PUT",
            body={"username": username, "email": email},
        )
        user = ProfileResponse.model_validate(data).user
        self.current_user = user
        return user

    async def change_password(self, current_password: str, new_password: str) -> str:
        data = await self.gateway.request(
            "/auth/password",
            method="PUT",
            body={"currentPassword": current_password, "newPassword": new_password},
        )
        return MessageResponse.model_validate(data).message

    async def check_auth_status(self) -> bool:
        """Verifies the stored token against the profile endpoint.

        Any failure, not only a 401, drops the token: a session whose profile
        cannot be fetched is not trusted.
        """
        if not self.token_store.token:
            return False
        try:
            await self.get_profile()
            return True
        except (ApiError, ValidationError) as e:
            logger.error(f"Auth check failed: {e}")
            await self.token_store.clear()
            self.current_user = None
            return False

    # --- Content ---
    async def generate_question(
        self, category: Union[Category, str], difficulty: Optional[float] = None
    ) -> Question:
        payload: Dict[str, Any] = {"type": _category_value(category)}
        if difficulty is not None:
            payload["difficulty"] = difficulty
        try:
            data = await self.gateway.request(
                "/questions/generate", method="POST", body=payload
            )
            return Question.model_validate(data)
        except (ApiError, ValidationError) as e:
            if not self.is_authenticated():
                logger.warning(
                    f"Question generation failed ({e}), "
                    f"serving offline sample for {payload['type']}"
                )
                return self.fallback.sample_question(category)
            raise

    async def submit_answer(
        self, question_id: str, answer: str, response_time: Optional[int] = None
    ) -> GradingResult:
        sample = self.fallback.find(question_id)
        if sample is not None:
            return self.fallback.grade(sample, answer)

        submission = AnswerSubmission(
            question_id=question_id, user_answer=answer, response_time=response_time
        )
        data = await self.gateway.request(
            "/questions/answer", method="POST", body=submission.to_payload()
        )
        result = GradingResult.model_validate(data)
        await self.refresh_stats()
        return result

    async def get_user_stats(self) -> ProgressStats:
        try:
            data = await self.gateway.request("/questions/stats")
            stats = ProgressStats.model_validate(data)
        except (ApiError, ValidationError) as e:
            logger.warning(f"Failed to load stats: {e}")
            stats = ProgressStats()
        self.stats = stats
        return stats

    async def refresh_stats(self) -> ProgressStats:
        if not self.is_authenticated():
            return self.stats
        return await self.get_user_stats()

    async def get_missed_questions(self) -> List[Question]:
        try:
            data = await self.gateway.request("/questions/missed")
            return _question_list.validate_python(data)
        except (ApiError, ValidationError) as e:
            logger.warning(f"Failed to load missed questions: {e}")
            return []
