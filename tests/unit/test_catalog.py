"""Unit tests for the lesson and rubric catalogs."""

import json

import pytest

from writewise.catalog import (
    LessonCatalog,
    RubricCatalog,
    format_rubric_for_prompt,
    get_all_lessons,
    get_all_rubric_ids,
    get_lesson_by_id,
    get_lessons_by_tier,
    get_rubric_by_id,
)
from writewise.exceptions import LessonNotFoundError, RubricNotFoundError


# ---------------------------------------------------------------------------
# Bundled data
# ---------------------------------------------------------------------------

class TestBundledLessons:
    def test_curriculum_size(self):
        assert len(get_all_lessons()) == 49

    def test_tier_split(self):
        assert len(get_lessons_by_tier(1)) == 25
        assert len(get_lessons_by_tier(2)) == 12
        assert len(get_lessons_by_tier(3)) == 12
        assert get_lessons_by_tier(4) == []

    def test_lesson_ids_unique(self):
        ids = [lesson.id for lesson in get_all_lessons()]
        assert len(ids) == len(set(ids))

    def test_capstone_lesson(self):
        lesson = get_lesson_by_id("N1.1.5")
        assert lesson.title == "Write a Story Beginning"
        assert lesson.type == "narrative"
        assert lesson.tier == 1
        assert lesson.rubric_id == "N1_story_beginning"

    def test_unknown_lesson_is_none(self):
        assert get_lesson_by_id("Z9.9.9") is None

    def test_every_objective_list_non_empty(self):
        assert all(lesson.learning_objectives for lesson in get_all_lessons())


class TestBundledRubrics:
    def test_nine_rubrics(self):
        assert len(get_all_rubric_ids()) == 9

    @pytest.mark.parametrize("rubric_id", [
        "D1_senses", "D3_personal_essay", "E1_all_about",
        "N1_story_beginning", "N1_story_middle", "N2_story_structure",
        "N3_complex_narrative", "P1_opinion_paragraph", "P2_persuasive_essay",
    ])
    def test_weights_sum_to_one(self, rubric_id):
        rubric = get_rubric_by_id(rubric_id)
        assert sum(c.weight for c in rubric.criteria) == pytest.approx(1.0)

    def test_every_criterion_has_four_levels(self):
        for rubric_id in get_all_rubric_ids():
            for criterion in get_rubric_by_id(rubric_id).criteria:
                assert set(criterion.levels) == {"1", "2", "3", "4"}

    def test_lesson_rubric_links_resolve(self):
        for lesson in get_all_lessons():
            if lesson.rubric_id:
                rubric = get_rubric_by_id(lesson.rubric_id)
                assert rubric is not None
                assert lesson.id in rubric.lesson_ids

    def test_min_words(self):
        assert get_rubric_by_id("N1_story_beginning").min_words == 15
        assert get_rubric_by_id("P2_persuasive_essay").min_words == 100


# ---------------------------------------------------------------------------
# Catalog classes
# ---------------------------------------------------------------------------

class TestLessonCatalog:
    def test_require(self, sample_lesson, practice_lesson):
        catalog = LessonCatalog([sample_lesson, practice_lesson])

        assert catalog.require("N1.1.5") is sample_lesson
        assert len(catalog) == 2
        with pytest.raises(LessonNotFoundError):
            catalog.require("missing")

    def test_from_file(self, tmp_path):
        path = tmp_path / "lessons.json"
        path.write_text(json.dumps({"lessons": [{
            "id": "X1", "title": "Test", "unit": "U", "type": "expository",
            "tier": 2, "learning_objectives": ["Do a thing"],
        }]}))

        catalog = LessonCatalog.from_file(path)

        assert catalog.get("X1").learning_objectives == ("Do a thing",)
        assert catalog.by_tier(2)[0].id == "X1"


class TestRubricCatalog:
    def test_require(self, sample_rubric):
        catalog = RubricCatalog([sample_rubric])

        assert catalog.require("N1_story_beginning") is sample_rubric
        with pytest.raises(RubricNotFoundError):
            catalog.require("nope")


class TestFormatRubricForPrompt:
    def test_renders_criteria_and_levels(self, sample_rubric):
        text = format_rubric_for_prompt(sample_rubric)

        assert text.startswith("Rubric: Story beginning")
        assert "Expected length: 30-75 words" in text
        assert "CRITERION: Setting (weight: 25%)" in text
        assert "  4 - Excellent setting" in text
        assert "  1 - Beginning creativity" in text
