"""Reference data: curriculum lessons and scoring rubrics."""
from writewise.catalog.lessons import (
    LessonCatalog,
    get_all_lessons,
    get_lesson_by_id,
    get_lesson_catalog,
    get_lessons_by_tier,
)
from writewise.catalog.rubrics import (
    RubricCatalog,
    format_rubric_for_prompt,
    get_all_rubric_ids,
    get_rubric_by_id,
    get_rubric_catalog,
)
