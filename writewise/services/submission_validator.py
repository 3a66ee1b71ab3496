"""
Submission Validator

Quality gate applied to a learner's piece before it is sent for scoring:
a minimum word count and a vowel-based gibberish check. Messages are
written for children and shown verbatim.
"""

import re
from typing import Optional

from writewise.exceptions import SubmissionValidationError
from writewise.models.assessment import InvalidSubmission, ValidationResult, ValidSubmission
from writewise.models.lesson import Rubric


DEFAULT_MIN_WORDS = 10
MIN_VOWEL_RATIO = 0.4

_VOWEL_RE = re.compile(r"[aeiouy]", re.IGNORECASE)

TOO_SHORT_MESSAGE = (
    "Your writing needs at least {min_words} words to be scored. "
    "You have {word_count} so far — keep going, you've got this!"
)
GIBBERISH_MESSAGE = (
    "Hmm, that doesn't look like real writing yet. "
    "Try writing real sentences about the topic — you can do it!"
)


def min_words_for(rubric: Optional[Rubric]) -> int:
    if rubric is None:
        return DEFAULT_MIN_WORDS
    return rubric.min_words


def validate_submission(text: str, rubric: Optional[Rubric] = None) -> ValidationResult:
    """Check length first, then the share of tokens containing a vowel."""
    words = text.split()
    word_count = len(words)
    min_words = min_words_for(rubric)

    if word_count < min_words:
        return InvalidSubmission(
            error="too_short",
            message=TOO_SHORT_MESSAGE.format(min_words=min_words, word_count=word_count),
            word_count=word_count,
            min_words=min_words,
        )

    vowel_words = sum(1 for word in words if _VOWEL_RE.search(word))
    if vowel_words / word_count < MIN_VOWEL_RATIO:
        return InvalidSubmission(
            error="gibberish",
            message=GIBBERISH_MESSAGE,
            word_count=word_count,
            min_words=min_words,
        )

    return ValidSubmission(word_count=word_count)


def ensure_valid_submission(text: str, rubric: Optional[Rubric] = None) -> ValidSubmission:
    """Like validate_submission, but raises SubmissionValidationError on rejection."""
    result = validate_submission(text, rubric)
    if isinstance(result, InvalidSubmission):
        raise SubmissionValidationError(
            error=result.error,
            message=result.message,
            word_count=result.word_count,
            min_words=result.min_words,
        )
    return result
