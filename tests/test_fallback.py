import pytest

from logicmaster.fallback import SAMPLE_QUESTIONS, FallbackResolver
from logicmaster.models import Category


@pytest.mark.parametrize("category", list(Category))
def test_sample_matches_category(category: Category) -> None:
    question = FallbackResolver().sample_question(category)

    assert question.category is category
    assert question.is_fallback
    assert question.correct_answer in question.option_labels


def test_sample_is_deterministic() -> None:
    resolver = FallbackResolver()
    assert resolver.sample_question("weaken") == resolver.sample_question("weaken")
    assert FallbackResolver().sample_question("flaw") == resolver.sample_question(
        Category.FLAW
    )


@pytest.mark.parametrize("category", ["parallel", "", "STRENGTHEN", None])
def test_unknown_category_falls_back_to_strengthen(category) -> None:
    resolver = FallbackResolver()
    assert resolver.sample_question(category) == resolver.sample_question("strengthen")


def test_find_by_id() -> None:
    resolver = FallbackResolver()
    assert resolver.find("sample-assumption-1") is SAMPLE_QUESTIONS[Category.ASSUMPTION]
    assert resolver.find("q-1") is None


def test_grade_against_known_answer() -> None:
    resolver = FallbackResolver()
    question = resolver.sample_question("weaken")

    right = resolver.grade(question, "C")
    wrong = resolver.grade(question, "A")

    assert right.correct is True
    assert wrong.correct is False
    assert wrong.correct_answer == "C"
    assert wrong.explanation == question.explanation
