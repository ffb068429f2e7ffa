import logging
from typing import Dict, Optional, Union

from .models import Category, GradingResult, Question

logger = logging.getLogger(__name__)

SAMPLE_QUESTIONS: Dict[Category, Question] = {
    Category.STRENGTHEN: Question(
        id="sample-strengthen-1",
        category=Category.STRENGTHEN,
        prompt=(
            "A local restaurant owner claims that installing outdoor heaters will "
            "significantly increase winter revenue. She argues that customers will "
            "be more likely to dine outside during cold months if the patio is "
            "heated, thus expanding seating capacity when indoor dining is limited."
            "\n\nWhich of the following, if true, most strengthens the restaurant "
            "owner's argument?"
        ),
        options=[
            "A) The cost of outdoor heaters can be recovered within six months of installation",
            "B) Other restaurants in the area have reported increased winter sales after installing outdoor heaters",
            "C) Many customers prefer dining outdoors regardless of temperature",
            "D) The restaurant currently has a waiting list during peak dinner hours in winter",
            "E) Outdoor heaters consume significant amounts of energy",
        ],
        correct_answer="B",
        explanation=(
            "Option B strengthens the argument by providing concrete evidence that "
            "outdoor heaters have actually resulted in increased winter sales for "
            "similar restaurants."
        ),
    ),
    Category.WEAKEN: Question(
        id="sample-weaken-1",
        category=Category.WEAKEN,
        prompt=(
            "City planners argue that building a new subway line will reduce "
            "traffic congestion downtown. They claim that many commuters will "
            "switch from driving to taking the subway, resulting in fewer cars on "
            "the roads during rush hour.\n\nWhich of the following, if true, most "
            "weakens the planners' argument?"
        ),
        options=[
            "A) The subway line will increase property values along its route",
            "B) The construction of the subway will temporarily increase traffic congestion",
            "C) Most downtown commuters live in areas not served by the new subway line",
            "D) Subway tickets will cost less than parking fees downtown",
            "E) The subway will run every 10 minutes during rush hour",
        ],
        correct_answer="C",
        explanation=(
            "Option C weakens the argument because if most commuters live in areas "
            "not served by the subway, they cannot switch to using it, undermining "
            "the predicted reduction in traffic."
        ),
    ),
    Category.ASSUMPTION: Question(
        id="sample-assumption-1",
        category=Category.ASSUMPTION,
        prompt=(
            "A company CEO argues that implementing a four-day work week will "
            "increase employee productivity. She reasons that well-rested "
            "employees are more focused and efficient, so the company will "
            "accomplish the same amount of work in fewer days.\n\nThe CEO's "
            "argument depends on which of the following assumptions?"
        ),
        options=[
            "A) Employees currently work inefficiently due to fatigue",
            "B) The company does not offer four-day work weeks to competitors",
            "C) Employee salaries will remain the same despite working fewer days",
            "D) The work that needs to be completed can be done in four days instead of five",
            "E) Employees will not seek additional employment on their extra day off",
        ],
        correct_answer="D",
        explanation=(
            "The argument assumes that the total amount of work can actually be "
            "completed in four days. Without this assumption, the conclusion "
            "cannot follow."
        ),
    ),
    Category.FLAW: Question(
        id="sample-flaw-1",
        category=Category.FLAW,
        prompt=(
            "Dr. Martinez concludes that playing classical music improves "
            "mathematical ability in children. Her evidence is a study showing "
            "that students who took piano lessons for six months scored higher on "
            "math tests than those who did not take lessons.\n\nThe reasoning is "
            "most vulnerable to criticism because it:"
        ),
        options=[
            "A) Relies on a study with too small a sample size",
            "B) Fails to consider that piano lessons and listening to classical music are different activities",
            "C) Ignores the possibility that students who choose piano lessons may already have stronger analytical skills",
            "D) Does not account for the students socioeconomic backgrounds",
            "E) Assumes that correlation between piano lessons and math scores indicates causation",
        ],
        correct_answer="E",
        explanation=(
            "The main flaw is assuming that correlation between piano lessons and "
            "math scores indicates causation. Just because students who take piano "
            "lessons score higher doesn't mean the lessons caused the improvement."
        ),
    ),
}


# --- Service Layer: Offline Content ---
class FallbackResolver:
    """Serves one bundled question per category when live content is unavailable."""

    def __init__(self, questions: Optional[Dict[Category, Question]] = None):
        self.questions = questions or SAMPLE_QUESTIONS
        self._by_id = {q.id: q for q in self.questions.values()}

    def sample_question(self, category: Union[Category, str]) -> Question:
        try:
            key = Category(category)
        except ValueError:
            key = Category.STRENGTHEN
        return self.questions.get(key, self.questions[Category.STRENGTHEN])

    def find(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def grade(self, question: Question, answer: str) -> GradingResult:
        """Grades a bundled question against its known answer, no server involved."""
        correct = answer == question.correct_answer
        logger.info(
            f"Graded offline question {question.id}: "
            f"{answer!r} -> {'CORRECT' if correct else 'INCORRECT'}"
        )
        return GradingResult(
            correct=correct,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
        )
