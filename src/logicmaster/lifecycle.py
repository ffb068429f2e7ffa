import asyncio
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar, Union

from .models import Category, GradingResult, Question
from .session import SessionFacade

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LifecycleState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PRESENTED = "presented"
    SELECTED = "selected"
    SUBMITTING = "submitting"
    GRADED = "graded"
    REVIEW_COMPLETE = "review_complete"


class LifecycleError(Exception):
    """A transition was requested from a state that does not allow it."""


class OperationCancelled(Exception):
    """The owning controller was closed while its request was in flight."""


class CancellationToken:
    """Cancels every request task started through :meth:`run` once tripped."""

    def __init__(self):
        self.cancelled = False
        self._tasks: Set[asyncio.Task] = set()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        for task in list(self._tasks):
            task.cancel()

    async def run(self, coro: Awaitable[T]) -> T:
        if self.cancelled:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise OperationCancelled()

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            # Only our own cancel becomes OperationCancelled; an outer cancel propagates.
            if self.cancelled and current is not None and not current.cancelling():
                raise OperationCancelled() from None
            raise
        finally:
            self._tasks.discard(task)

        if self.cancelled:
            raise OperationCancelled()
        return result


# --- Question Lifecycle ---
class QuestionController(ABC):
    """Per-screen state machine: present, select, submit, show explanation.

    Subclasses decide how a question is obtained (``start``) and what
    happens after grading (``advance``).
    """

    def __init__(
        self, facade: SessionFacade, clock: Callable[[], float] = time.monotonic
    ):
        self.facade = facade
        self.clock = clock
        self.state = LifecycleState.IDLE
        self.question: Optional[Question] = None
        self.selected: Optional[str] = None
        self.result: Optional[GradingResult] = None
        self.started_at: Optional[float] = None
        self.last_error: Optional[Exception] = None
        self._cancel = CancellationToken()

    @property
    def closed(self) -> bool:
        return self._cancel.cancelled

    @property
    def busy(self) -> bool:
        return self.state in (LifecycleState.LOADING, LifecycleState.SUBMITTING)

    def close(self) -> None:
        self._cancel.cancel()

    def _require(self, *states: LifecycleState) -> None:
        if self.closed:
            raise LifecycleError("Question view is closed")
        if self.busy:
            raise LifecycleError("A request is already in progress")
        if self.state not in states:
            raise LifecycleError(f"Not allowed while {self.state.value}")

    def _present(self, question: Question) -> None:
        self.question = question
        self.selected = None
        self.result = None
        self.state = LifecycleState.PRESENTED

    @abstractmethod
    async def start(self) -> Optional[Question]:
        pass

    @abstractmethod
    async def advance(self) -> Optional[Question]:
        pass

    def select(self, label: str) -> None:
        if self.state == LifecycleState.GRADED:
            return
        self._require(LifecycleState.PRESENTED, LifecycleState.SELECTED)
        if label not in self.question.option_labels:
            raise LifecycleError(f"Unknown option {label!r}")
        self.selected = label
        self.state = LifecycleState.SELECTED

    async def submit(self) -> GradingResult:
        self._require(LifecycleState.SELECTED)
        response_time = round(self.clock() - self.started_at)
        self.state = LifecycleState.SUBMITTING
        try:
            result = await self._cancel.run(
                self.facade.submit_answer(self.question.id, self.selected, response_time)
            )
        except OperationCancelled:
            raise
        except asyncio.CancelledError:
            self.state = LifecycleState.SELECTED
            raise
        except Exception as e:
            self.last_error = e
            self.state = LifecycleState.SELECTED
            logger.error(f"Failed to submit answer for {self.question.id}: {e}")
            raise

        self.result = result
        self.last_error = None
        self.state = LifecycleState.GRADED
        logger.info(
            f"Q{self.question.id}: selected {self.selected!r} in {response_time}s "
            f"-> {'CORRECT' if result.correct else 'INCORRECT'}"
        )
        return result

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "state": self.state.value,
            "selected": self.selected,
            "question": None,
            "result": None,
            "error": str(self.last_error) if self.last_error else None,
        }
        if self.question is not None:
            hidden = set() if self.result else {"correct_answer", "explanation"}
            data["question"] = self.question.model_dump(
                mode="json", by_alias=True, exclude=hidden
            )
            data["title"] = self.question.category.display_name
        if self.result is not None:
            data["result"] = self.result.model_dump(mode="json", by_alias=True)
        return data


class PracticeController(QuestionController):
    """Endless practice in one category: each advance generates a fresh question."""

    def __init__(
        self,
        facade: SessionFacade,
        category: Union[Category, str] = Category.STRENGTHEN,
        difficulty: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(facade, clock)
        self.category = category
        self.difficulty = difficulty

    @property
    def category_name(self) -> str:
        return getattr(self.category, "value", str(self.category))

    async def start(self) -> Question:
        self._require(LifecycleState.IDLE)
        return await self._load()

    async def advance(self) -> Question:
        self._require(LifecycleState.GRADED)
        self.state = LifecycleState.IDLE
        return await self._load()

    async def _load(self) -> Question:
        self.question = None
        self.selected = None
        self.result = None
        self.started_at = self.clock()
        self.state = LifecycleState.LOADING
        try:
            question = await self._cancel.run(
                self.facade.generate_question(self.category, self.difficulty)
            )
        except OperationCancelled:
            raise
        except asyncio.CancelledError:
            self.state = LifecycleState.IDLE
            raise
        except Exception as e:
            self.last_error = e
            self.state = LifecycleState.IDLE
            logger.error(f"Failed to load question ({self.category_name}): {e}")
            raise

        self.last_error = None
        self._present(question)
        return question


class ReviewController(QuestionController):
    """Walks the missed questions fetched once at start, then completes."""

    def __init__(
        self, facade: SessionFacade, clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(facade, clock)
        self.questions: List[Question] = []
        self.index = 0

    @property
    def complete(self) -> bool:
        return self.state == LifecycleState.REVIEW_COMPLETE

    async def start(self) -> Optional[Question]:
        self._require(LifecycleState.IDLE)
        self.state = LifecycleState.LOADING
        try:
            questions = await self._cancel.run(self.facade.get_missed_questions())
        except OperationCancelled:
            raise
        except asyncio.CancelledError:
            self.state = LifecycleState.IDLE
            raise
        except Exception as e:
            self.last_error = e
            self.state = LifecycleState.IDLE
            raise

        self.questions = list(questions)
        self.index = 0
        logger.info(f"Review started with {len(self.questions)} missed questions")
        return self._present_current()

    async def advance(self) -> Optional[Question]:
        self._require(LifecycleState.GRADED)
        self.index += 1
        return self._present_current()

    def _present_current(self) -> Optional[Question]:
        if self.index >= len(self.questions):
            self.question = None
            self.selected = None
            self.result = None
            self.state = LifecycleState.REVIEW_COMPLETE
            return None
        self.started_at = self.clock()
        self._present(self.questions[self.index])
        return self.question

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["index"] = self.index
        data["total"] = len(self.questions)
        return data
